# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Union

import pytest

from webos_tv_client import ClientKeyStore, WebOsConnector

class FakeWebSocket:
    """An in-memory frame channel. Frames fed by the test are returned from recv() in order;
       frames sent by the client are recorded and can be awaited."""

    sent: List[str]
    closed: bool
    send_error: Optional[BaseException]

    def __init__(self):
        self.sent = []
        self.closed = False
        self.send_error = None
        self._incoming: asyncio.Queue[Union[str, bytes, BaseException]] = asyncio.Queue()
        self._sent_queue: asyncio.Queue[str] = asyncio.Queue()

    def feed(self, frame: Union[str, bytes, Dict[str, Any]]) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._incoming.put_nowait(frame)

    def feed_error(self, exc: BaseException) -> None:
        self._incoming.put_nowait(exc)

    async def next_sent(self, timeout: float=2.0) -> Dict[str, Any]:
        text = await asyncio.wait_for(self._sent_queue.get(), timeout)
        return json.loads(text)

    async def send(self, message: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        if self.closed:
            raise ConnectionResetError("channel is closed")
        self.sent.append(message)
        self._sent_queue.put_nowait(message)

    async def recv(self) -> Union[str, bytes]:
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(ConnectionResetError("channel is closed"))

class FakeConnector(WebOsConnector):
    channel: FakeWebSocket
    connect_error: Optional[BaseException]
    connect_count: int

    def __init__(self, channel: Optional[FakeWebSocket]=None, connect_error: Optional[BaseException]=None):
        self.channel = FakeWebSocket() if channel is None else channel
        self.connect_error = connect_error
        self.connect_count = 0

    async def connect(self) -> FakeWebSocket:
        self.connect_count += 1
        if self.connect_error is not None:
            raise self.connect_error
        return self.channel

class RecordingKeyStore(ClientKeyStore):
    """Counts reads and writes so tests can check how often the session touches the store."""

    key: Optional[str]
    writes: List[str]
    reads: int

    def __init__(self, key: Optional[str]=None):
        self.key = key
        self.writes = []
        self.reads = 0

    def get_client_key(self) -> Optional[str]:
        self.reads += 1
        return self.key

    def set_client_key(self, key: str) -> None:
        self.writes.append(key)
        self.key = key

REGISTERED_FRAME = {"type": "registered", "id": "register_0", "payload": {"client-key": "abc"}}

@pytest.fixture
def channel() -> FakeWebSocket:
    return FakeWebSocket()

@pytest.fixture
def connector(channel: FakeWebSocket) -> FakeConnector:
    return FakeConnector(channel)

@pytest.fixture
def key_store() -> RecordingKeyStore:
    return RecordingKeyStore()
