# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
webOS TV transport connector interface.

Provides a low-level abstract interface for objects that can open the duplex
frame channel to a TV. The session performs the handshake on the channel; the
connector only opens it. This abstraction allows for alternate transports and
for in-memory channels in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import websockets
from typing_extensions import Protocol

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_CONTROL_PORT
from .util import host_of_url

DEFAULT_OPEN_TIMEOUT = 10.0
"""Timeout (in seconds) for opening the websocket, including the HTTP upgrade."""

class FrameChannel(Protocol):
    """The subset of a websockets client connection used by a session."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> Union[str, bytes]: ...

    async def close(self) -> None: ...

class WebOsConnector(ABC):
    """Abstract base class for webOS TV transport connectors."""

    @abstractmethod
    async def connect(self) -> FrameChannel:
        """Open a frame channel to the TV associated with this connector.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

def control_url_for_location(location: str, port: int=DEFAULT_CONTROL_PORT) -> str:
    """Derives the websocket control endpoint from a discovered device location:
       the same host, on the fixed control port."""
    host = host_of_url(location)
    if ':' in host:
        host = f"[{host}]"
    return f"ws://{host}:{port}"

class WebSocketConnector(WebOsConnector):
    """Opens a plain websocket to the TV's control port."""

    url: str
    open_timeout: Optional[float]

    def __init__(self, url: str, open_timeout: Optional[float]=DEFAULT_OPEN_TIMEOUT):
        self.url = url
        self.open_timeout = open_timeout

    @classmethod
    def for_location(cls, location: str, port: int=DEFAULT_CONTROL_PORT, open_timeout: Optional[float]=DEFAULT_OPEN_TIMEOUT) -> WebSocketConnector:
        return cls(control_url_for_location(location, port=port), open_timeout=open_timeout)

    async def connect(self) -> FrameChannel:
        logger.debug(f"Opening websocket to {self.url}")
        # App and channel lists can exceed the default frame size limit
        result = await websockets.connect(self.url, open_timeout=self.open_timeout, max_size=None)
        return result

    def __str__(self) -> str:
        return f"WebSocketConnector({self.url})"

    def __repr__(self) -> str:
        return str(self)
