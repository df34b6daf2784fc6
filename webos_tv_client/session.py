#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
WebOsSession -- one connection to one TV.

  DISCONNECTED -> CONNECTING -> HANDSHAKING -> PAIRED
                                            -> FAILED

connect() opens the frame channel and performs the pairing handshake:

  Client: {"type": "register", "id": ..., "payload": <manifest>[+ "client-key"]}
  TV:     {"type": "response", "payload": {"pairingType": "PROMPT"}}   (only if no valid client key was sent;
                                                                        the user must accept on the TV)
  TV:     {"type": "registered", "payload": {"client-key": <key>}}     (pairing complete), or
          {"type": "error", "error": <detail>}                          (pairing rejected)

  <Normal request/response session begins>

After pairing, a MessageDispatcher owns the channel until disconnect() or a transport failure.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_CONTROL_PORT
from .exceptions import (
    WebOsTvError,
    HandshakeTransportError,
    RegistrationRejectedError,
    UnsupportedResponseError,
    MalformedPayloadError,
    MalformedFrameError,
    TransportError,
  )
from .protocol import (
    Message,
    Response,
    SuccessResponse,
    ErrorResponse,
    RegisteredResponse,
    create_registration_message,
    decode_response,
    load_registration_payload,
  )
from .client_key_store import ClientKeyStore
from .connector import FrameChannel, WebOsConnector, WebSocketConnector
from .dispatcher import MessageDispatcher

PromptHandler = Callable[[], None]
"""Called when the TV asks the user to accept the pairing request on screen."""

class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    PAIRED = "paired"
    FAILED = "failed"

class WebOsSession(AsyncContextManager['WebOsSession']):
    connector: WebOsConnector
    key_store: ClientKeyStore
    manifest: JsonableDict
    """The registration manifest, loaded once at construction."""

    handshake_timeout: Optional[float]
    """Maximum time (in seconds) to wait for each handshake frame. None waits indefinitely,
       which gives the user as long as needed to accept the pairing prompt."""

    on_prompt: Optional[PromptHandler]

    _state: SessionState = SessionState.DISCONNECTED
    _channel: Optional[FrameChannel] = None
    _dispatcher: Optional[MessageDispatcher] = None
    _failure: Optional[BaseException] = None
    _aborted: bool = False
    """Set by disconnect() while connect() is in progress."""

    def __init__(
            self,
            connector: WebOsConnector,
            key_store: ClientKeyStore,
            manifest: Optional[JsonableDict]=None,
            handshake_timeout: Optional[float]=None,
            on_prompt: Optional[PromptHandler]=None,
          ):
        self.connector = connector
        self.key_store = key_store
        self.manifest = load_registration_payload() if manifest is None else manifest
        self.handshake_timeout = handshake_timeout
        self.on_prompt = on_prompt

    @classmethod
    def for_location(
            cls,
            location: str,
            key_store: ClientKeyStore,
            control_port: int=DEFAULT_CONTROL_PORT,
            **kwargs: Any
          ) -> WebOsSession:
        """Creates a session for a discovered device location. The control endpoint is the
           location's host on control_port."""
        return cls(WebSocketConnector.for_location(location, port=control_port), key_store, **kwargs)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def failure(self) -> Optional[BaseException]:
        """The error that moved the session to FAILED, if any."""
        return self._failure

    # ======================= connect / handshake

    async def connect(self) -> None:
        """Opens the connection and pairs with the TV. On return the session is PAIRED.

        Raises a HandshakeError subclass (or the key store's StoreError) on failure, in which case the
        session is FAILED and the connection is closed.
        """
        if self._state in (SessionState.CONNECTING, SessionState.HANDSHAKING, SessionState.PAIRED):
            raise WebOsTvError(f"{self}: connect() called in state {self._state.value}")
        # a session that failed after pairing may still hold its stopped dispatcher
        await self._release()
        self._failure = None
        self._aborted = False
        self._state = SessionState.CONNECTING
        logger.debug(f"Connecting: {self}")
        try:
            channel = await self.connector.connect()
        except asyncio.CancelledError:
            self._state = SessionState.DISCONNECTED
            raise
        except Exception as e:
            error = HandshakeTransportError(f"Unable to connect to {self.connector}: {e}")
            self._set_failed(error)
            raise error from e

        self._channel = channel
        self._state = SessionState.HANDSHAKING
        try:
            if self._aborted:
                raise HandshakeTransportError(f"{self}: disconnected while connecting")
            await self._handshake(channel)
            if self._aborted:
                raise HandshakeTransportError(f"{self}: disconnected during handshake")
        except BaseException as e:
            if self._channel is channel:
                self._channel = None
            if self._aborted:
                self._state = SessionState.DISCONNECTED
            else:
                self._set_failed(e)
            await self._close_channel(channel)
            raise

        self._dispatcher = MessageDispatcher(channel, on_failure=self._on_transport_failure)
        self._dispatcher.start()
        self._state = SessionState.PAIRED
        logger.info(f"Handshake: {self} connected and paired")

    async def _recv_handshake_frame(self, channel: FrameChannel) -> Union[str, bytes]:
        try:
            if self.handshake_timeout is None:
                return await channel.recv()
            return await asyncio.wait_for(channel.recv(), self.handshake_timeout)
        except asyncio.TimeoutError as e:
            raise HandshakeTransportError(f"Handshake: no response from TV within {self.handshake_timeout} seconds") from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise HandshakeTransportError(f"Handshake: connection failed while waiting for TV: {e}") from e

    async def _handshake(self, channel: FrameChannel) -> None:
        client_key = self.key_store.get_client_key()
        message = create_registration_message(client_key, manifest=self.manifest)
        logger.debug(f"Handshake: sending registration request id={message.id}, with client key={client_key is not None}")
        try:
            await channel.send(message.encode())
        except Exception as e:
            raise HandshakeTransportError(f"Handshake: unable to send registration request: {e}") from e

        while True:
            frame = await self._recv_handshake_frame(channel)
            frame_text = frame if isinstance(frame, str) else frame.decode('utf-8', errors='replace')
            try:
                response = decode_response(frame)
            except MalformedFrameError as e:
                raise MalformedPayloadError(f"Handshake: {e}") from e
            logger.debug(f"Handshake: received {response}")

            if isinstance(response, SuccessResponse):
                if not response.is_pairing_prompt:
                    raise UnsupportedResponseError("Unsupported registration response was received", frame_text)
                logger.warning("Please accept the connection on the TV")
                if self.on_prompt is not None:
                    self.on_prompt()
            elif isinstance(response, ErrorResponse):
                raise RegistrationRejectedError(response.error)
            elif isinstance(response, RegisteredResponse):
                new_key = response.client_key
                if new_key is None:
                    raise MalformedPayloadError(f"Handshake: registration response has no client key: {frame_text}")
                self.key_store.set_client_key(new_key)
                return
            else:
                raise UnsupportedResponseError(f"Unsupported websocket response type '{response.type}'", frame_text)

    # ======================= failure / disconnect

    def _set_failed(self, error: BaseException) -> None:
        self._state = SessionState.FAILED
        self._failure = error

    def _on_transport_failure(self, error: TransportError) -> None:
        if self._state == SessionState.PAIRED:
            self._set_failed(error)

    async def _close_channel(self, channel: FrameChannel) -> None:
        try:
            await channel.close()
        except Exception:
            logger.exception("Exception while closing channel")

    async def _release(self) -> None:
        dispatcher, self._dispatcher = self._dispatcher, None
        channel, self._channel = self._channel, None
        if dispatcher is not None:
            await dispatcher.stop()
        if channel is not None:
            await self._close_channel(channel)

    async def disconnect(self) -> None:
        """Stops the dispatcher tasks, closes the connection, and waits for the tasks to exit.
           Calls still pending fail with ConnectionLostError. Safe to call in any state.

        If connect() is still in progress, the attempt is aborted: connect() raises
        HandshakeTransportError and the session never becomes PAIRED.
        """
        if self._state in (SessionState.CONNECTING, SessionState.HANDSHAKING):
            self._aborted = True
        await self._release()
        if self._state != SessionState.FAILED:
            self._state = SessionState.DISCONNECTED
        logger.debug(f"Disconnected: {self}")

    async def wait_for_done(self) -> None:
        """Waits until the session stops. Raises the TransportError if it stopped because of one."""
        if self._dispatcher is None:
            if isinstance(self._failure, TransportError):
                raise self._failure
            return
        await asyncio.shield(self._dispatcher.final_result)

    # ======================= calls

    async def send_blocking(self, message: Message, timeout: Optional[float]=None) -> Response:
        """Sends message and waits for its response. See MessageDispatcher.send_blocking()."""
        dispatcher = self._dispatcher
        if dispatcher is None:
            if isinstance(self._failure, TransportError):
                raise type(self._failure)(str(self._failure)) from self._failure
            raise TransportError(f"{self}: not connected (state={self._state.value})")
        return await dispatcher.send_blocking(message, timeout=timeout)

    async def request(self, uri: str, payload: Optional[JsonableDict]=None, timeout: Optional[float]=None) -> Response:
        """Sends a request for uri with a fresh correlation id and waits for its response."""
        return await self.send_blocking(Message(uri=uri, payload=payload), timeout=timeout)

    async def __aenter__(self) -> WebOsSession:
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
        return f"WebOsSession({self.connector}, state={self._state.value})"

    def __repr__(self) -> str:
        return str(self)
