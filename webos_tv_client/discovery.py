#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Discovery of webOS TVs on the local network.

  1. SsdpClient sends an SSDP M-SEARCH probe to the multicast group (239.255.255.250:1900)
     and collects replies until none arrives within a configurable wait time.
  2. DeviceDiscoverer extracts the advertised LOCATION of each reply, fetches each distinct
     device descriptor over HTTP, and keeps the locations whose descriptor contains a keyword.
  3. resolve_device_location() insists that exactly one device matched.
"""

from __future__ import annotations


import asyncio
import socket
import time

import aiohttp

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    SSDP_MULTICAST_TTL,
    SSDP_MX,
    DEFAULT_RESPONSE_WAIT_TIME,
    DEFAULT_DESCRIPTOR_FETCH_TIMEOUT,
    MEDIA_RENDERER_SERVICE_TYPE,
    LG_TV_MODEL_NAME_TAG,
  )
from .exceptions import (
    ProbeFailedError,
    DeviceValidationError,
    NoDeviceFoundError,
    AmbiguousDeviceError,
  )
from .ssdp_datagram import SsdpDatagram
from .ssdp_socket import SsdpSocket, SsdpSocketBinding, SsdpDatagramSubscriber
from .util import get_local_ip_addresses

class SsdpResponseInfo:
    socket_binding: SsdpSocketBinding
    """The socket binding on which the response was received"""

    src_addr: HostAndPort
    """The source address of the response"""

    datagram: SsdpDatagram
    """The response datagram"""

    monotonic_time: float
    """The local time at which the response was received, as returned by time.monotonic()."""

    def __init__(self, socket_binding: SsdpSocketBinding, src_addr: HostAndPort, datagram: SsdpDatagram) -> None:
        self.socket_binding = socket_binding
        self.src_addr = src_addr
        self.datagram = datagram
        self.monotonic_time = time.monotonic()

    @property
    def location(self) -> Optional[str]:
        return self.datagram.location

class SsdpSearchRequest(
        AsyncContextManager['SsdpSearchRequest'],
        AsyncIterable[SsdpResponseInfo]
      ):
    """Manages a single M-SEARCH probe on an SsdpClient and all of the received responses
       within an AsyncContextManager/AsyncIterable interface.

    Usage:
        async with SsdpSearchRequest(ssdp_client, service_type) as search_request:
            async for response in search_request:
                print(response.location)
    """

    ssdp_client: SsdpClient
    service_type: str
    response_wait_time: float
    dg_subscriber: SsdpDatagramSubscriber

    def __init__(
            self,
            ssdp_client: SsdpClient,
            service_type: str=MEDIA_RENDERER_SERVICE_TYPE,
            response_wait_time: Optional[float]=None,
          ):
        self.ssdp_client = ssdp_client
        self.service_type = service_type
        self.response_wait_time = ssdp_client.response_wait_time if response_wait_time is None else response_wait_time
        self.dg_subscriber = SsdpDatagramSubscriber(ssdp_client)

    async def __aenter__(self) -> SsdpSearchRequest:
        # The subscriber must be started before the probe is sent so that no responses are missed.
        await self.dg_subscriber.__aenter__()
        try:
            probe = SsdpDatagram.search_request(
                self.service_type,
                mx=self.ssdp_client.mx,
                multicast_address=self.ssdp_client.multicast_address,
                multicast_port=self.ssdp_client.multicast_port,
              )
            for socket_binding in self.ssdp_client.socket_bindings:
                try:
                    socket_binding.sendto(probe, (self.ssdp_client.multicast_address, self.ssdp_client.multicast_port))
                except OSError as e:
                    raise ProbeFailedError(f"Unable to send discovery probe via {socket_binding}: {e}") from e
        except BaseException as e:
            # A call to __aenter__ that raises will not be paired with a call to __aexit__
            await self.dg_subscriber.__aexit__(type(e), e, e.__traceback__)
            raise
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        return await self.dg_subscriber.__aexit__(exc_type, exc, tb)

    async def iter_responses(self) -> AsyncIterator[SsdpResponseInfo]:
        """Yields successful responses until no datagram arrives for response_wait_time seconds.
           Silence is the only end-of-replies signal."""
        while True:
            try:
                resp_tuple = await asyncio.wait_for(self.dg_subscriber.receive(), self.response_wait_time)
            except asyncio.TimeoutError:
                break
            except OSError as e:
                raise ProbeFailedError(f"Discovery socket failed: {e}") from e
            if resp_tuple is None:
                break
            socket_binding, addr, datagram = resp_tuple
            if not datagram.is_response:
                # our own probe looped back, or another client's search
                continue
            if datagram.status_code != 200:
                logger.debug(f"Ignoring SSDP error response from {addr}: {datagram.statement_line}")
                continue
            yield SsdpResponseInfo(socket_binding, addr, datagram)

    def __aiter__(self) -> AsyncIterator[SsdpResponseInfo]:
        return self.iter_responses()


class SsdpClient(SsdpSocket):
    """An SSDP client that sends M-SEARCH probes from one or more local addresses and collects responses."""

    response_wait_time: float
    """The amount of time (in seconds) to wait for the next response. Collection ends after this much silence."""

    mx: int
    """The MX hint sent in probes."""

    multicast_address: str
    multicast_port: int
    multicast_ttl: int

    bind_addresses: List[str]
    """The local IP addresses to bind to. An empty string binds the wildcard address."""

    def __init__(
            self,
            response_wait_time: float=DEFAULT_RESPONSE_WAIT_TIME,
            bind_addresses: Optional[Iterable[str]]=None,
            all_interfaces: bool=False,
            mx: int=SSDP_MX,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
            multicast_ttl: int=SSDP_MULTICAST_TTL,
          ) -> None:
        super().__init__()
        self.response_wait_time = response_wait_time
        self.mx = mx
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.multicast_ttl = multicast_ttl
        if bind_addresses is None:
            bind_addresses = get_local_ip_addresses() if all_interfaces else ['']
        self.bind_addresses = list(bind_addresses)

    def add_socket_bindings(self) -> None:
        logger.debug(f"Creating socket bindings to {self.bind_addresses}")
        for bind_address in self.bind_addresses:
            try:
                sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                    sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.multicast_ttl)
                    if bind_address != '':
                        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(bind_address))
                    sock.bind((bind_address, 0))
                    sock.setblocking(False)
                except BaseException:
                    sock.close()
                    raise
            except OSError as e:
                raise ProbeFailedError(f"Unable to create discovery socket bound to '{bind_address}': {e}") from e
            self.add_socket_binding(SsdpSocketBinding(sock))

    def search(self, service_type: str=MEDIA_RENDERER_SERVICE_TYPE, response_wait_time: Optional[float]=None) -> SsdpSearchRequest:
        """Create an async context manager/iterable that sends a probe and returns the responses as they arrive."""
        return SsdpSearchRequest(self, service_type=service_type, response_wait_time=response_wait_time)

    async def simple_search(self, service_type: str=MEDIA_RENDERER_SERVICE_TYPE, response_wait_time: Optional[float]=None) -> List[SsdpResponseInfo]:
        """Sends a probe, collects responses until they stop arriving, and returns them all."""
        results: List[SsdpResponseInfo] = []
        async with self.search(service_type=service_type, response_wait_time=response_wait_time) as search_request:
            async for response in search_request:
                results.append(response)
        return results

    async def __aenter__(self) -> SsdpClient:
        await super().__aenter__()
        return self


class DeviceDiscoverer:
    """Finds the device descriptor locations of TVs that answer an SSDP probe and whose
       descriptor contains a keyword."""

    service_type: str
    response_wait_time: float
    bind_addresses: Optional[List[str]]
    all_interfaces: bool
    fetch_timeout: float
    multicast_address: str
    multicast_port: int

    def __init__(
            self,
            service_type: str=MEDIA_RENDERER_SERVICE_TYPE,
            response_wait_time: float=DEFAULT_RESPONSE_WAIT_TIME,
            bind_addresses: Optional[Iterable[str]]=None,
            all_interfaces: bool=False,
            fetch_timeout: float=DEFAULT_DESCRIPTOR_FETCH_TIMEOUT,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
          ):
        self.service_type = service_type
        self.response_wait_time = response_wait_time
        self.bind_addresses = None if bind_addresses is None else list(bind_addresses)
        self.all_interfaces = all_interfaces
        self.fetch_timeout = fetch_timeout
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port

    def create_ssdp_client(self) -> SsdpClient:
        return SsdpClient(
            response_wait_time=self.response_wait_time,
            bind_addresses=self.bind_addresses,
            all_interfaces=self.all_interfaces,
            multicast_address=self.multicast_address,
            multicast_port=self.multicast_port,
          )

    async def search_locations(self) -> List[str]:
        """Probes the network and returns the distinct LOCATION values advertised, in arrival order.

        Raises ProbeFailedError if the probe cannot be sent or a discovery socket fails.
        """
        locations: Dict[str, None] = {}
        async with self.create_ssdp_client() as client:
            async with client.search(service_type=self.service_type) as search_request:
                async for info in search_request:
                    location = info.location
                    if location is None:
                        logger.debug(f"SSDP response from {info.src_addr} has no LOCATION header; ignoring")
                        continue
                    locations[location] = None
        logger.debug(f"Discovered candidate locations: {list(locations)}")
        return list(locations)

    async def fetch_descriptor(self, session: aiohttp.ClientSession, location: str) -> str:
        """Fetches the device descriptor document at location."""
        timeout = aiohttp.ClientTimeout(total=self.fetch_timeout)
        async with session.get(location, timeout=timeout) as response:
            response.raise_for_status()
            return await response.text(errors='replace')

    async def _check_location(self, session: aiohttp.ClientSession, location: str, keyword: str) -> bool:
        descriptor = await self.fetch_descriptor(session, location)
        matched = keyword in descriptor
        logger.debug(f"Descriptor at {location} {'matches' if matched else 'does not match'} keyword {keyword!r}")
        return matched

    async def validate_locations(self, locations: Iterable[str], keyword: str) -> List[str]:
        """Returns the distinct locations whose descriptor contains keyword, sorted.

        A candidate whose descriptor cannot be fetched is skipped. If no candidate at all could be
        fetched, DeviceValidationError is raised.
        """
        candidates = list(dict.fromkeys(locations))
        if len(candidates) == 0:
            return []
        async with aiohttp.ClientSession() as session:
            results = await asyncio.gather(
                *(self._check_location(session, location, keyword) for location in candidates),
                return_exceptions=True
              )
        matched: List[str] = []
        errors: List[BaseException] = []
        for location, result in zip(candidates, results):
            if isinstance(result, BaseException):
                if not isinstance(result, (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)):
                    raise result
                logger.warning(f"Unable to fetch device descriptor at {location}; skipping: {result!r}")
                errors.append(result)
            elif result:
                matched.append(location)
        if len(errors) == len(candidates):
            raise DeviceValidationError(
                f"None of the {len(candidates)} discovered device descriptors could be fetched") from errors[0]
        return sorted(matched)

    async def discover(self, keyword: str=LG_TV_MODEL_NAME_TAG) -> List[str]:
        locations = await self.search_locations()
        return await self.validate_locations(locations, keyword)


async def discover(
        service_type: str=MEDIA_RENDERER_SERVICE_TYPE,
        match_keyword: str=LG_TV_MODEL_NAME_TAG,
        response_wait_time: float=DEFAULT_RESPONSE_WAIT_TIME,
        bind_addresses: Optional[Iterable[str]]=None,
        all_interfaces: bool=False,
      ) -> List[str]:
    """Probes the local network for devices of service_type and returns the distinct descriptor
       locations whose descriptor contains match_keyword. May return zero, one, or many locations."""
    discoverer = DeviceDiscoverer(
        service_type=service_type,
        response_wait_time=response_wait_time,
        bind_addresses=bind_addresses,
        all_interfaces=all_interfaces,
      )
    return await discoverer.discover(match_keyword)

def select_device_location(locations: Sequence[str]) -> str:
    """Returns the single location in locations.

    Raises NoDeviceFoundError if there are none, or AmbiguousDeviceError if there is more than one.
    """
    distinct = list(dict.fromkeys(locations))
    if len(distinct) == 0:
        raise NoDeviceFoundError()
    if len(distinct) > 1:
        raise AmbiguousDeviceError(distinct)
    return distinct[0]

async def resolve_device_location(
        match_keyword: str=LG_TV_MODEL_NAME_TAG,
        discoverer: Optional[DeviceDiscoverer]=None,
      ) -> str:
    """Discovers devices matching match_keyword and returns the location of the only one."""
    if discoverer is None:
        discoverer = DeviceDiscoverer()
    locations = await discoverer.discover(match_keyword)
    return select_device_location(locations)
