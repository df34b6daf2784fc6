# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio

import pytest

from webos_tv_client import (
    WebOsSession,
    SessionState,
    HandshakeTransportError,
    RegistrationRejectedError,
    UnsupportedResponseError,
    MalformedPayloadError,
    StoreError,
    ConnectionLostError,
    TransportError,
    load_registration_payload,
)

from conftest import FakeConnector, FakeWebSocket, RecordingKeyStore, REGISTERED_FRAME

class FailingKeyStore(RecordingKeyStore):
    def set_client_key(self, key: str) -> None:
        raise StoreError("disk full")

async def test_registered_stores_key_once(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, key_store)
    await session.connect()
    try:
        assert session.state == SessionState.PAIRED
        assert key_store.writes == ["abc"]
        register = await channel.next_sent()
        assert register["type"] == "register"
        assert "client-key" not in register["payload"]
        assert register["payload"]["manifest"] == load_registration_payload()["manifest"]
    finally:
        await session.disconnect()
    assert session.state == SessionState.DISCONNECTED

async def test_stored_key_is_sent(connector: FakeConnector, channel: FakeWebSocket):
    key_store = RecordingKeyStore("previous-key")
    channel.feed({"type": "registered", "payload": {"client-key": "previous-key"}})
    async with WebOsSession(connector, key_store) as session:
        assert session.state == SessionState.PAIRED
    register = await channel.next_sent()
    assert register["payload"]["client-key"] == "previous-key"
    assert key_store.reads == 1
    assert key_store.writes == ["previous-key"]

async def test_prompt_then_registered(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    prompts = []
    channel.feed({"type": "response", "id": "register_0", "payload": {"pairingType": "PROMPT", "returnValue": True}})
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, key_store, on_prompt=lambda: prompts.append(True))
    await session.connect()
    await session.disconnect()
    assert prompts == [True]
    assert key_store.writes == ["abc"]

async def test_rejected_registration(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed({"type": "error", "id": "register_0", "error": "denied"})
    session = WebOsSession(connector, key_store)
    with pytest.raises(RegistrationRejectedError) as exc_info:
        await session.connect()
    assert exc_info.value.detail == "denied"
    assert str(exc_info.value) == "Failed to register client: denied"
    assert key_store.writes == []
    assert session.state == SessionState.FAILED
    assert channel.closed

async def test_success_without_prompt_is_unsupported(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed({"type": "response", "payload": {"returnValue": True}})
    session = WebOsSession(connector, key_store)
    with pytest.raises(UnsupportedResponseError) as exc_info:
        await session.connect()
    assert "returnValue" in exc_info.value.frame
    assert session.state == SessionState.FAILED
    assert channel.closed

async def test_unknown_type_is_unsupported(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed({"type": "hello", "payload": {}})
    session = WebOsSession(connector, key_store)
    with pytest.raises(UnsupportedResponseError):
        await session.connect()
    assert key_store.writes == []

async def test_malformed_handshake_frame(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed("{not json")
    session = WebOsSession(connector, key_store)
    with pytest.raises(MalformedPayloadError):
        await session.connect()
    assert session.state == SessionState.FAILED

async def test_registered_without_key(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed({"type": "registered", "payload": {}})
    session = WebOsSession(connector, key_store)
    with pytest.raises(MalformedPayloadError):
        await session.connect()
    assert key_store.writes == []

async def test_connect_failure(key_store: RecordingKeyStore):
    connector = FakeConnector(connect_error=ConnectionRefusedError("refused"))
    session = WebOsSession(connector, key_store)
    with pytest.raises(HandshakeTransportError):
        await session.connect()
    assert session.state == SessionState.FAILED
    assert isinstance(session.failure, HandshakeTransportError)

async def test_connection_drops_during_handshake(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed_error(ConnectionResetError("reset by peer"))
    session = WebOsSession(connector, key_store)
    with pytest.raises(HandshakeTransportError):
        await session.connect()
    assert key_store.writes == []
    assert channel.closed

async def test_handshake_timeout(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    session = WebOsSession(connector, key_store, handshake_timeout=0.05)
    with pytest.raises(HandshakeTransportError):
        await session.connect()
    assert session.state == SessionState.FAILED

async def test_store_error_propagates(connector: FakeConnector, channel: FakeWebSocket):
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, FailingKeyStore())
    with pytest.raises(StoreError):
        await session.connect()
    assert session.state == SessionState.FAILED
    assert channel.closed

async def test_request_after_pairing(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed(REGISTERED_FRAME)
    async with WebOsSession(connector, key_store) as session:
        await channel.next_sent()
        task = asyncio.create_task(session.request("ssap://audio/getVolume"))
        request = await channel.next_sent()
        assert request["type"] == "request"
        assert request["uri"] == "ssap://audio/getVolume"
        assert "payload" not in request
        channel.feed({"type": "response", "id": request["id"], "payload": {"volume": 11}})
        response = await task
        assert response.payload == {"volume": 11}

async def test_request_before_connect_fails(connector: FakeConnector, key_store: RecordingKeyStore):
    session = WebOsSession(connector, key_store)
    with pytest.raises(TransportError):
        await session.request("ssap://audio/getVolume")

async def test_connection_lost_fails_session(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, key_store)
    await session.connect()
    await channel.next_sent()
    task = asyncio.create_task(session.request("ssap://system/getSystemInfo"))
    await channel.next_sent()
    channel.feed_error(ConnectionResetError("reset by peer"))
    with pytest.raises(ConnectionLostError):
        await task
    with pytest.raises(ConnectionLostError):
        await session.wait_for_done()
    assert session.state == SessionState.FAILED
    await session.disconnect()
    assert session.state == SessionState.FAILED

async def test_disconnect_is_idempotent(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, key_store)
    await session.connect()
    await session.disconnect()
    await session.disconnect()
    assert channel.closed
    assert session.state == SessionState.DISCONNECTED

class QuietCloseWebSocket(FakeWebSocket):
    """Keeps delivering queued frames after close(), like a peer whose reply was already in flight."""

    async def close(self) -> None:
        self.closed = True

class GatedConnector(FakeConnector):
    """Holds connect() open until the test releases it."""

    def __init__(self, channel: FakeWebSocket):
        super().__init__(channel)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def connect(self) -> FakeWebSocket:
        self.entered.set()
        await self.release.wait()
        return await super().connect()

async def test_disconnect_during_handshake_aborts_connect(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    session = WebOsSession(connector, key_store)
    connect_task = asyncio.create_task(session.connect())
    await channel.next_sent()
    assert session.state == SessionState.HANDSHAKING
    await session.disconnect()
    assert channel.closed
    channel.feed(REGISTERED_FRAME)
    with pytest.raises(HandshakeTransportError):
        await connect_task
    assert session.state == SessionState.DISCONNECTED
    assert key_store.writes == []
    with pytest.raises(TransportError):
        await session.request("ssap://audio/getVolume")

async def test_disconnect_before_registration_reply_is_handled(key_store: RecordingKeyStore):
    channel = QuietCloseWebSocket()
    session = WebOsSession(FakeConnector(channel), key_store)
    connect_task = asyncio.create_task(session.connect())
    await channel.next_sent()
    await session.disconnect()
    channel.feed(REGISTERED_FRAME)
    with pytest.raises(HandshakeTransportError):
        await connect_task
    assert session.state == SessionState.DISCONNECTED
    assert session._dispatcher is None
    assert channel.closed

async def test_disconnect_while_connecting(channel: FakeWebSocket, key_store: RecordingKeyStore):
    connector = GatedConnector(channel)
    session = WebOsSession(connector, key_store)
    connect_task = asyncio.create_task(session.connect())
    await connector.entered.wait()
    assert session.state == SessionState.CONNECTING
    await session.disconnect()
    connector.release.set()
    with pytest.raises(HandshakeTransportError):
        await connect_task
    assert session.state == SessionState.DISCONNECTED
    assert channel.closed
    assert channel.sent == []

async def test_reconnect_after_failure_stops_old_dispatcher(connector: FakeConnector, channel: FakeWebSocket, key_store: RecordingKeyStore):
    channel.feed(REGISTERED_FRAME)
    session = WebOsSession(connector, key_store)
    await session.connect()
    channel.feed_error(ConnectionResetError("reset by peer"))
    with pytest.raises(ConnectionLostError):
        await session.wait_for_done()
    assert session.state == SessionState.FAILED
    old_dispatcher = session._dispatcher
    assert old_dispatcher is not None

    new_channel = FakeWebSocket()
    new_channel.feed(REGISTERED_FRAME)
    connector.channel = new_channel
    await session.connect()
    try:
        assert session.state == SessionState.PAIRED
        assert session._dispatcher is not old_dispatcher
        assert all(task.done() for task in old_dispatcher._tasks)
        assert session.failure is None
    finally:
        await session.disconnect()
