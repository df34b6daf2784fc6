#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
WebOsTvClient -- finds a TV on the local network and talks to it.

    async with await WebOsTvClient.create(key_store) as client:
        response = await client.request("ssap://audio/getVolume")
        print(response.payload)
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger
from .constants import LG_TV_MODEL_NAME_TAG, DEFAULT_CONTROL_PORT
from .client_key_store import ClientKeyStore, KeyringClientKeyStore
from .discovery import DeviceDiscoverer, resolve_device_location
from .protocol import Message, Response
from .session import WebOsSession, SessionState, PromptHandler
from .util import host_of_url
from .config import WebOsTvClientConfig

class WebOsTvClient(AsyncContextManager['WebOsTvClient']):
    location: str
    """The device descriptor location of the TV."""

    session: WebOsSession

    def __init__(self, location: str, session: WebOsSession):
        self.location = location
        self.session = session

    @classmethod
    async def create(
            cls,
            key_store: ClientKeyStore,
            keyword: str=LG_TV_MODEL_NAME_TAG,
            location: Optional[str]=None,
            discoverer: Optional[DeviceDiscoverer]=None,
            control_port: int=DEFAULT_CONTROL_PORT,
            handshake_timeout: Optional[float]=None,
            on_prompt: Optional[PromptHandler]=None,
          ) -> WebOsTvClient:
        """Creates a client for the single TV whose descriptor contains keyword. Does not connect.

        If location is provided, discovery is skipped. Raises NoDeviceFoundError or
        AmbiguousDeviceError unless exactly one TV matches.
        """
        if location is None:
            location = await resolve_device_location(keyword, discoverer=discoverer)
        logger.debug(f"Using TV at {location}")
        session = WebOsSession.for_location(
            location,
            key_store,
            control_port=control_port,
            handshake_timeout=handshake_timeout,
            on_prompt=on_prompt,
          )
        return cls(location, session)

    @classmethod
    async def from_config(
            cls,
            config: WebOsTvClientConfig,
            key_store: Optional[ClientKeyStore]=None,
            on_prompt: Optional[PromptHandler]=None,
          ) -> WebOsTvClient:
        """Creates a client from configuration. Unless key_store is provided, the client key is kept
           in the OS keyring under the TV's host name."""
        location = config.device_location
        if location is None:
            discoverer = DeviceDiscoverer(
                service_type=config.service_type,
                response_wait_time=config.response_wait_time,
                bind_addresses=config.bind_addresses,
              )
            location = await resolve_device_location(config.keyword, discoverer=discoverer)
        if key_store is None:
            key_store = KeyringClientKeyStore(host_of_url(location), service=config.keyring_service)
        return await cls.create(
            key_store,
            location=location,
            control_port=config.control_port,
            handshake_timeout=config.handshake_timeout,
            on_prompt=on_prompt,
          )

    @property
    def state(self) -> SessionState:
        return self.session.state

    async def connect(self) -> None:
        await self.session.connect()

    async def disconnect(self) -> None:
        await self.session.disconnect()

    async def send_blocking(self, message: Message, timeout: Optional[float]=None) -> Response:
        return await self.session.send_blocking(message, timeout=timeout)

    async def request(self, uri: str, payload: Optional[JsonableDict]=None, timeout: Optional[float]=None) -> Response:
        return await self.session.request(uri, payload=payload, timeout=timeout)

    async def __aenter__(self) -> WebOsTvClient:
        await self.connect()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.disconnect()
        return False

    def __str__(self) -> str:
        return f"WebOsTvClient(location={self.location!r}, state={self.state.value})"

    def __repr__(self) -> str:
        return str(self)
