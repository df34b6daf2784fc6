#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Abstraction of a datagram packet used in the SSDP protocol.
"""

from __future__ import annotations

import re

from .internal_types import *
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, SSDP_MX

from .util import (
    CaseInsensitiveDict,
    split_bytes_at_lf_or_crlf,
    parse_http_headers,
    encode_http_header,
)

class SsdpDatagram:
    """Wrapper for a raw SSDP datagram.

    This class provides parsing and formatting of the HTTP-like packets, a case-insensitive
    view of the headers, and a few convenient properties. Instances are immutable once built;
    use the constructor to build an outgoing datagram or `SsdpDatagram(raw_data=...)` to
    parse a received one.
    """

    _response_statement_re = re.compile(r'^HTTP/(?P<version>[0-9]+\.[0-9]+) +(?P<status_code>[0-9]+) *(?P<status>.*?) *$')

    _raw_data: bytes
    """The raw UDP datagram contents"""

    _statement_line: str
    """The first line of the datagram; e.g., "HTTP/1.1 200 OK", "M-SEARCH * HTTP/1.1", etc."""

    _headers: CaseInsensitiveDict[str]
    """The headers as a CaseInsensitiveDict[str]."""

    _body: bytes
    """The body of the datagram, if any. If there is no body, b'' is returned."""

    def __init__(
            self,
            statement: Optional[str]=None,
            headers: Optional[Mapping[str, Union[str, int]]]=None,
            body: Optional[bytes]=None,
            raw_data: Optional[bytes]=None,
          ):
        if raw_data is None:
            if statement is None:
                raise ValueError("Either statement or raw_data must be provided")
            self._statement_line = statement
            self._headers = CaseInsensitiveDict()
            if headers is not None:
                for name, value in headers.items():
                    self._headers[name] = str(value)
            self._body = b'' if body is None else body
            self._raw_data = self._build_raw_data()
        else:
            if not (statement is None and headers is None and body is None):
                raise ValueError("If raw_data is provided, statement, headers, and body must be None")
            self._raw_data = raw_data
            statement_and_remainder = split_bytes_at_lf_or_crlf(raw_data, 1)
            self._statement_line = statement_and_remainder[0].decode('utf-8', errors='replace').strip()
            remainder = b'' if len(statement_and_remainder) < 2 else statement_and_remainder[1]
            self._headers, self._body = parse_http_headers(remainder)

    @classmethod
    def search_request(
            cls,
            service_type: str,
            mx: int=SSDP_MX,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
          ) -> SsdpDatagram:
        """Builds an M-SEARCH discovery probe for a given search target (ST)."""
        return cls(
            "M-SEARCH * HTTP/1.1",
            headers={
                "HOST": f"{multicast_address}:{multicast_port}",
                "MAN": '"ssdp:discover"',
                "ST": service_type,
                "MX": mx,
              }
          )

    def _build_raw_data(self) -> bytes:
        result = self._statement_line.encode('utf-8') + b'\r\n'
        for name, value in self._headers.items():
            result += encode_http_header(name, value)
        result += b'\r\n' + self._body
        return result

    @property
    def raw_data(self) -> bytes:
        """The raw UDP datagram contents"""
        return self._raw_data

    @property
    def statement_line(self) -> str:
        return self._statement_line

    @property
    def headers(self) -> CaseInsensitiveDict[str]:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def is_response(self) -> bool:
        """True if this is an HTTP-style response (as opposed to an M-SEARCH or NOTIFY request)"""
        return self._response_statement_re.match(self._statement_line) is not None

    @property
    def status_code(self) -> Optional[int]:
        """The status code in the statement line of a response (e.g., 200), or None if this is not a response"""
        m = self._response_statement_re.match(self._statement_line)
        return None if m is None else int(m.group('status_code'))

    @property
    def location(self) -> Optional[str]:
        """The value of the LOCATION header (the URL of the device descriptor), or None."""
        result = self._headers.get('Location', None)
        if result is None or result == '':
            return None
        return result

    def __getitem__(self, name: str) -> str:
        return self._headers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._headers

    def __str__(self) -> str:
        return f"SsdpDatagram('{self._statement_line}', headers={dict(self._headers)}, body={self._body!r})"

    def __repr__(self) -> str:
        return str(self)
