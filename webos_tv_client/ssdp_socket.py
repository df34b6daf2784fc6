#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpSocket -- An abstract base class for an SSDP socket that can:

  1. Send SsdpDatagrams to a multicast or unicast address from one or more bound sockets
  2. Receive and decode SsdpDatagrams from remote nodes and deliver them to any number of async subscribers

  The subscriber interface is a simple async iterator that returns a sequence of
  (SsdpSocketBinding, HostAndPort, SsdpDatagram) tuples until the socket is closed.

  Subclasses must implement the add_socket_bindings() method to create and bind the sockets that will be
  used to receive and send datagrams.
"""

from __future__ import annotations


import asyncio
from asyncio import Future
import socket
from abc import ABC, abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .exceptions import ProbeFailedError
from .ssdp_datagram import SsdpDatagram

MAX_QUEUE_SIZE = 1000

SsdpReceivedDatagram = Tuple['SsdpSocketBinding', HostAndPort, SsdpDatagram]

class SsdpSocketBinding:
    """
    An encapsulation of the binding of an SsdpSocket to a single low-level
    bound datagram socket. There is one instance of this class created for each
    low-level socket that is in use (typically one per local address).
    """

    ssdp_socket: Optional[SsdpSocket] = None
    """The SsdpSocket that owns this binding."""

    index: int = -1
    """The index of this socket binding within SsdpSocket. Set to -1 until this socket binding is added."""

    sock: Optional[socket.socket] = None
    """The low-level bound socket."""

    transport: Optional[asyncio.DatagramTransport] = None
    """The asyncio transport created for sock by loop.create_datagram_endpoint()."""

    sockname: str
    """The name of the socket as it should be displayed in logs, etc"""

    def __init__(self, sock: socket.socket, sockname: Optional[str]=None):
        self.sock = sock
        self.sockname = str(sock.getsockname()) if sockname is None else sockname

    def sendto(self, datagram: SsdpDatagram, addr: HostAndPort) -> None:
        logger.debug(f"Sending SsdpDatagram via {self} to {addr}: {datagram}")
        if self.transport is None:
            raise ProbeFailedError(f"{self} is not open")
        self.transport.sendto(datagram.raw_data, addr)

    def __str__(self) -> str:
        return f"SsdpSocketBinding({self.index}: {self.sockname})"

    def __repr__(self) -> str:
        return str(self)

class _SsdpSocketProtocol(asyncio.DatagramProtocol):
    """An adapter between an asyncio datagram transport and SsdpSocket. There is one instance
       of this class created for each low-level socket."""

    socket_binding: SsdpSocketBinding

    def __init__(self, socket_binding: SsdpSocketBinding):
        self.socket_binding = socket_binding

    @property
    def ssdp_socket(self) -> SsdpSocket:
        assert self.socket_binding.ssdp_socket is not None
        return self.socket_binding.ssdp_socket

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        self.ssdp_socket.datagram_received(self.socket_binding, addr, data)

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        self.ssdp_socket.error_received(self.socket_binding, exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.ssdp_socket.connection_lost(self.socket_binding, exc)


class SsdpDatagramSubscriber(
        AsyncContextManager['SsdpDatagramSubscriber'],
        AsyncIterable[SsdpReceivedDatagram]
      ):
    """A queue of datagrams received by an SsdpSocket, from the time the subscriber is entered
       until it exits or the socket ends. If the socket ends with an error, receive() raises it."""

    ssdp_socket: SsdpSocket
    queue: asyncio.Queue[Optional[SsdpReceivedDatagram]]
    eos: bool = False
    eos_exc: Optional[BaseException] = None

    def __init__(self, ssdp_socket: SsdpSocket, max_queue_size: int=MAX_QUEUE_SIZE):
        self.ssdp_socket = ssdp_socket
        self.queue = asyncio.Queue(max_queue_size)

    async def __aenter__(self) -> SsdpDatagramSubscriber:
        self.ssdp_socket.add_subscriber(self)
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.ssdp_socket.remove_subscriber(self)
        self.on_end_of_stream()
        return False

    async def iter_datagrams(self) -> AsyncIterator[SsdpReceivedDatagram]:
        while True:
            result = await self.receive()
            if result is None:
                break
            yield result

    def __aiter__(self) -> AsyncIterator[SsdpReceivedDatagram]:
        return self.iter_datagrams()

    async def receive(self) -> Optional[SsdpReceivedDatagram]:
        """Returns the next received datagram, or None at end of stream.

        Raises the socket's error if the stream ended with one.
        """
        if self.eos and self.queue.empty():
            result = None
        else:
            result = await self.queue.get()
        if result is None:
            # leave a marker for any other waiters
            self._put_eos_marker()
            if self.eos_exc is not None:
                raise self.eos_exc
        return result

    def _put_eos_marker(self) -> None:
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # queue is full so waiters will wake up soon
            pass

    def on_datagram(self, socket_binding: SsdpSocketBinding, addr: HostAndPort, datagram: SsdpDatagram) -> None:
        if not self.eos:
            try:
                self.queue.put_nowait((socket_binding, addr, datagram))
            except asyncio.QueueFull:
                logger.warning(f"Queue full, dropping datagram from {socket_binding} {addr}: {datagram}")

    def on_end_of_stream(self, exc: Optional[BaseException]=None) -> None:
        if not self.eos:
            self.eos = True
            self.eos_exc = exc
            self._put_eos_marker()

class SsdpSocket(AsyncContextManager['SsdpSocket'], ABC):
    """
    An abstract async SSDP socket that can send SsdpDatagrams and deliver received
    SsdpDatagrams to any number of async subscribers.

    Subclasses must implement add_socket_bindings().
    """

    socket_bindings: List[SsdpSocketBinding]
    """A list of SsdpSocketBinding instances, one for each low-level socket that is in use."""

    final_result: Future[None]
    """A future that is set when the socket is stopped."""

    datagram_subscribers: Set[SsdpDatagramSubscriber]
    """The subscribers that wish to receive SSDP Datagrams."""

    def __init__(self):
        self.socket_bindings = []
        self.datagram_subscribers = set()

    def add_subscriber(self, subscriber: SsdpDatagramSubscriber) -> None:
        self.datagram_subscribers.add(subscriber)

    def remove_subscriber(self, subscriber: SsdpDatagramSubscriber) -> None:
        self.datagram_subscribers.discard(subscriber)

    def add_socket_binding(self, socket_binding: SsdpSocketBinding) -> None:
        socket_binding.ssdp_socket = self
        socket_binding.index = len(self.socket_bindings)
        self.socket_bindings.append(socket_binding)
        logger.debug(f"Added socket binding {socket_binding}")

    @abstractmethod
    def add_socket_bindings(self) -> None:
        """Creates and binds the sockets that will be used to receive and send datagrams,
           and adds them with self.add_socket_binding(). Must be overridden by subclasses."""
        raise NotImplementedError()

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self.final_result = loop.create_future()
        try:
            self.add_socket_bindings()
            if len(self.socket_bindings) == 0:
                raise ProbeFailedError("No datagram sockets were added to SsdpSocket")

            for socket_binding in self.socket_bindings:
                # Note: asyncio datagram transports do not inherit from asyncio.DatagramTransport,
                # but implement the same interface.
                untyped_transport, _ = await loop.create_datagram_endpoint(
                    lambda: _SsdpSocketProtocol(socket_binding),
                    sock=socket_binding.sock
                  )
                socket_binding.transport = untyped_transport # type: ignore[assignment]
                logger.debug(f"Created datagram endpoint for {socket_binding}")
        except BaseException as e:
            self.set_final_exception(e)
            raise

    async def stop(self) -> None:
        """Stops the SsdpSocket, ending all subscriber streams."""
        self.set_final_result()

    def datagram_received(self, socket_binding: SsdpSocketBinding, addr: HostAndPort, data: bytes) -> None:
        try:
            datagram = SsdpDatagram(raw_data=data)
        except Exception as e:
            logger.warning(f"Error parsing datagram from {addr}, raw=[{data!r}]: {e}")
            return
        logger.debug(f"Received datagram from {socket_binding} {addr}: {datagram}")
        for subscriber in list(self.datagram_subscribers):
            subscriber.on_datagram(socket_binding, addr, datagram)

    def error_received(self, socket_binding: SsdpSocketBinding, exc: Exception) -> None:
        logger.info(f"Error received from transport {socket_binding}: {exc}")
        self.set_final_exception(exc)

    def connection_lost(self, socket_binding: SsdpSocketBinding, exc: Optional[Exception]) -> None:
        logger.debug(f"Connection to transport lost on {socket_binding}, exc={exc}")
        socket_binding.transport = None
        if exc is None:
            self.set_final_result()
        else:
            self.set_final_exception(exc)

    def _end_subscribers(self, exc: Optional[BaseException]) -> None:
        for subscriber in list(self.datagram_subscribers):
            subscriber.on_end_of_stream(exc)

    def _close_all(self) -> None:
        for socket_binding in self.socket_bindings:
            transport = socket_binding.transport
            socket_binding.transport = None
            if transport is not None:
                transport.close()
            elif socket_binding.sock is not None:
                socket_binding.sock.close()
            socket_binding.sock = None

    def set_final_exception(self, exc: BaseException) -> None:
        if not self.final_result.done():
            logger.debug(f"SsdpSocket: Setting final exception: {exc}")
            self.final_result.set_exception(exc)
            # the exception is surfaced through subscribers; mark it retrieved
            self.final_result.exception()
            self._end_subscribers(exc)
            self._close_all()

    def set_final_result(self) -> None:
        if not self.final_result.done():
            logger.debug("SsdpSocket: Setting final result to success")
            self.final_result.set_result(None)
            self._end_subscribers(None)
            self._close_all()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.stop()
        return False
