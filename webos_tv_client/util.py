#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

from ipaddress import IPv4Address
from urllib.parse import urlsplit

import netifaces

from email.parser import BytesHeaderParser
from email.message import Message as EmailParserMessage
from requests.structures import CaseInsensitiveDict

from .internal_types import *

def full_name_of_type(t: type) -> str:
    """Returns the fully qualified name of a type, e.g., 'webos_tv_client.session.WebOsSession'"""
    module = t.__module__
    if module == 'builtins':
        return t.__qualname__
    return f"{module}.{t.__qualname__}"

def full_type(o: object) -> str:
    """Returns the fully qualified name of an object's type."""
    return full_name_of_type(type(o))

def split_bytes_at_lf_or_crlf(data: bytes, maxsplit: SupportsIndex = -1) -> List[bytes]:
    """Split a byte string at LF or CRLF, with the delimiters removed.

    If maxsplit is given, at most maxsplit splits are done.
    """
    parts = data.split(b'\n', maxsplit)
    if len(parts) > 1:
        for i, part in enumerate(parts[:-1]):
            if part.endswith(b'\r'):
                parts[i] = part[:-1]
    return parts

def split_headers_and_body(data: bytes) -> Tuple[bytes, bytes]:
    """Splits a byte string with HTTP headers and an optional body into (headers, body).

    '\n' is accepted as a line delimiter even though '\r\n' is required by the standard;
    some responders are sloppy. If there is no body, b'' is returned for the body.
    """
    first_i = -1
    first_nb = 0

    for delim in (b'\n\r\n', b'\n\n'):
        i = data.find(delim)
        if i != -1 and (first_i == -1 or i < first_i):
            first_i = i
            first_nb = len(delim)
    if first_i == -1:
        return (data, b'')
    headers, body = data[:first_i], data[first_i + first_nb:]
    if headers.endswith(b'\r'):
        headers = headers[:-1]
    return (headers, body)

def parse_http_headers(data: bytes) -> Tuple[CaseInsensitiveDict[str], bytes]:
    """Parse HTTP-style headers out of a byte string, returning (headers, body).

    The statement line (e.g., "HTTP/1.1 200 OK") must already have been removed.
    Header names are case-insensitive; SSDP responders disagree on "LOCATION" vs "Location".
    """
    headers_data, body = split_headers_and_body(data)
    lines = split_bytes_at_lf_or_crlf(headers_data)
    msg: EmailParserMessage = BytesHeaderParser().parsebytes(b'\r\n'.join(lines) + b'\r\n')
    headers: CaseInsensitiveDict[str] = CaseInsensitiveDict(
        (name, str(value).strip()) for name, value in msg.items())
    return (headers, body)

def encode_http_header(name: str, value: Union[str, int]) -> bytes:
    """Encodes a raw HTTP header name/value pair, terminated with '\r\n'."""
    return f"{name}: {value}\r\n".encode('utf-8')

def host_of_url(url: str) -> str:
    """Returns the hostname (without port) of a URL such as an SSDP Location header.

    Raises ValueError if the URL has no host.
    """
    host = urlsplit(url).hostname
    if host is None or host == '':
        raise ValueError(f"URL has no host: {url!r}")
    return host

def get_default_ip_gateway_interface() -> Optional[str]:
    """Returns the interface name of the default IPv4 gateway, or None if there is none."""
    gws = netifaces.gateways()
    default_gateway_infos = gws.get("default", {})
    if netifaces.AF_INET in default_gateway_infos:
        return default_gateway_infos[netifaces.AF_INET][1]
    return None

def get_local_ip_addresses(include_loopback: bool=False) -> List[str]:
    """Returns the IPv4 addresses of the local host, one per interface address.

    Addresses on the default gateway interface come first, then other non-loopback addresses,
    then addresses that begin with 172. (usually docker bridges), then loopback addresses
    if requested.
    """
    result_with_priority: List[Tuple[int, str]] = []
    default_gateway_ifname = get_default_ip_gateway_interface()
    for ifname in netifaces.interfaces():
        for addrinfo in netifaces.ifaddresses(ifname).get(netifaces.AF_INET, []):
            ip_str = addrinfo['addr']
            if ifname == default_gateway_ifname:
                priority = 0
            elif IPv4Address(ip_str).is_loopback:
                if not include_loopback:
                    continue
                priority = 3
            elif ip_str.startswith('172.'):
                priority = 2
            else:
                priority = 1
            result_with_priority.append((priority, ip_str))
    return [ ip for _, ip in sorted(result_with_priority) ]
