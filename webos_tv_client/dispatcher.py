#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
MessageDispatcher -- request/response correlation over a paired frame channel.

Three tasks run while the dispatcher is active:

  frame decoder:   channel.recv() -> decode_response() -> inbound queue
  dispatcher loop: inbound queue -> pending-call registry lookup -> caller's future
  writer loop:     outbound queue -> channel.send(), in enqueue order

The writer loop is the only code that writes to the channel, and the frame decoder is the only code
that reads from it. The pending-call registry is only touched from the event loop between awaits,
so insert (by callers) and removal (by the dispatcher loop, timeouts, or failure) never interleave.

A read or write failure ends the dispatcher: every pending call fails with a TransportError, the
tasks stop, and the channel is closed. The failure is reported to the owner through on_failure.
"""

from __future__ import annotations

import asyncio
from asyncio import Future

from websockets.exceptions import ConnectionClosed

from .internal_types import *
from .pkg_logging import logger
from .exceptions import (
    ConnectionLostError,
    MalformedFrameError,
    RemoteError,
    TransportError,
    WriteFailedError,
  )
from .protocol import Message, Response, ErrorResponse, decode_response
from .connector import FrameChannel

FailureHandler = Callable[[TransportError], None]
"""Called once, on the event loop, when the dispatcher fails because of a transport error."""

class MessageDispatcher:
    channel: FrameChannel

    pending: Dict[str, Future[Response]]
    """The pending-call registry. Maps a correlation id to the future of the caller waiting on it."""

    failure: Optional[TransportError] = None
    """The transport error that ended the dispatcher, if any."""

    final_result: Future[None]
    """Set when the dispatcher stops; has an exception if it stopped because of a transport failure."""

    _inbound: asyncio.Queue[Response]
    _outbound: asyncio.Queue[str]
    _tasks: List[asyncio.Task[None]]
    _on_failure: Optional[FailureHandler]
    _stopping: bool = False

    def __init__(self, channel: FrameChannel, on_failure: Optional[FailureHandler]=None):
        self.channel = channel
        self.pending = {}
        self._inbound = asyncio.Queue()
        self._outbound = asyncio.Queue()
        self._tasks = []
        self._on_failure = on_failure
        self.final_result = asyncio.get_running_loop().create_future()

    def start(self) -> None:
        assert len(self._tasks) == 0
        self._tasks = [
            asyncio.create_task(self._decoder_loop(), name="webos-frame-decoder"),
            asyncio.create_task(self._dispatch_loop(), name="webos-dispatcher"),
            asyncio.create_task(self._writer_loop(), name="webos-writer"),
          ]

    @property
    def running(self) -> bool:
        return len(self._tasks) > 0 and not self.final_result.done()

    # ======================= loops

    async def _decoder_loop(self) -> None:
        while True:
            try:
                frame = await self.channel.recv()
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                await self._fail(ConnectionLostError(f"Connection to TV closed: {e}"), e)
                return
            except Exception as e:
                await self._fail(ConnectionLostError(f"Failed to read from TV: {e}"), e)
                return
            try:
                response = decode_response(frame)
            except MalformedFrameError as e:
                logger.warning(f"Skipping malformed frame: {e}")
                continue
            logger.debug(f"Received {response}")
            self._inbound.put_nowait(response)

    async def _dispatch_loop(self) -> None:
        while True:
            response = await self._inbound.get()
            future = None if response.id is None else self.pending.pop(response.id, None)
            if future is None:
                logger.debug(f"Dropping response with no waiting caller: {response}")
            elif not future.done():
                # wakes the caller on a later loop iteration; never blocks this loop
                future.set_result(response)

    async def _writer_loop(self) -> None:
        while True:
            text = await self._outbound.get()
            logger.debug(f"Sending {text}")
            try:
                await self.channel.send(text)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._fail(WriteFailedError(f"Failed to send message to TV: {e}"), e)
                return

    # ======================= failure and shutdown

    def _fail_pending(self, error: TransportError, cause: Optional[BaseException]) -> None:
        pending = list(self.pending.values())
        self.pending.clear()
        for future in pending:
            if not future.done():
                # a separate instance per caller, so tracebacks do not accumulate on a shared object
                caller_error = type(error)(str(error))
                caller_error.__cause__ = cause
                future.set_exception(caller_error)

    def _finish(self, error: Optional[TransportError]) -> None:
        if not self.final_result.done():
            if error is None:
                self.final_result.set_result(None)
            else:
                self.final_result.set_exception(error)
                # observers see the failure through session state; mark it retrieved
                self.final_result.exception()

    async def _fail(self, error: TransportError, cause: Optional[BaseException]) -> None:
        """Called from a loop task when the channel fails. Ends the dispatcher and closes the channel."""
        if self._stopping or self.final_result.done():
            return
        logger.error(f"Session failed: {error}")
        error.__cause__ = cause
        self.failure = error
        self._finish(error)
        self._fail_pending(error, cause)
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()
        try:
            await self.channel.close()
        except Exception:
            logger.exception("Exception while closing channel after failure")
        if self._on_failure is not None:
            self._on_failure(error)

    async def stop(self) -> None:
        """Stops all tasks and waits for them to exit. Calls still pending fail with ConnectionLostError.

        Does not close the channel; that belongs to the owner.
        """
        self._stopping = True
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._fail_pending(ConnectionLostError("Session disconnected"), None)
        self._finish(None)

    def _not_running_error(self) -> TransportError:
        if self.failure is not None:
            result = type(self.failure)(str(self.failure))
            result.__cause__ = self.failure
            return result
        return ConnectionLostError("Session is not connected")

    # ======================= calls

    async def send_blocking(self, message: Message, timeout: Optional[float]=None) -> Response:
        """Sends message and waits for the response with the same id.

        Raises RemoteError if the TV answers with an error response, a TransportError if the
        session fails or is disconnected first, or asyncio.TimeoutError if timeout (in seconds)
        elapses. A timed-out or cancelled call is removed from the registry.
        """
        if not self.running:
            raise self._not_running_error()
        text = message.encode()
        if message.id in self.pending:
            raise ValueError(f"A call with id {message.id} is already pending")
        future: Future[Response] = asyncio.get_running_loop().create_future()
        self.pending[message.id] = future
        try:
            await self._outbound.put(text)
            if timeout is None:
                response = await future
            else:
                response = await asyncio.wait_for(future, timeout)
        finally:
            if self.pending.get(message.id) is future:
                del self.pending[message.id]
        if isinstance(response, ErrorResponse):
            raise RemoteError(response.error, response)
        return response
