# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import pytest

from webos_tv_client import SsdpDatagram

LG_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"CACHE-CONTROL: max-age=1800\r\n"
    b"DATE: Sun, 18 Oct 2026 10:00:00 GMT\r\n"
    b"EXT:\r\n"
    b"location: http://192.168.1.30:1637/\r\n"
    b"SERVER: WebOS/4.1.0 UPnP/1.0\r\n"
    b"ST: urn:schemas-upnp-org:device:MediaRenderer:1\r\n"
    b"USN: uuid:2a8c7e57-5b7d-4d8a-9c43-6a3e3b0b6b91::urn:schemas-upnp-org:device:MediaRenderer:1\r\n"
    b"\r\n"
)

def test_search_request_format():
    probe = SsdpDatagram.search_request("urn:schemas-upnp-org:device:MediaRenderer:1")
    lines = probe.raw_data.split(b"\r\n")
    assert lines[0] == b"M-SEARCH * HTTP/1.1"
    assert b"HOST: 239.255.255.250:1900" in lines
    assert b'MAN: "ssdp:discover"' in lines
    assert b"ST: urn:schemas-upnp-org:device:MediaRenderer:1" in lines
    assert b"MX: 2" in lines
    assert probe.raw_data.endswith(b"\r\n\r\n")
    assert not probe.is_response

def test_parse_response_headers_case_insensitive():
    datagram = SsdpDatagram(raw_data=LG_RESPONSE)
    assert datagram.is_response
    assert datagram.status_code == 200
    assert datagram.location == "http://192.168.1.30:1637/"
    assert datagram["LOCATION"] == datagram["Location"]
    assert "server" in datagram
    assert datagram.body == b""

def test_parse_response_with_lf_line_endings():
    datagram = SsdpDatagram(raw_data=LG_RESPONSE.replace(b"\r\n", b"\n"))
    assert datagram.status_code == 200
    assert datagram.location == "http://192.168.1.30:1637/"

def test_missing_or_empty_location():
    assert SsdpDatagram(raw_data=b"HTTP/1.1 200 OK\r\nST: x\r\n\r\n").location is None
    assert SsdpDatagram(raw_data=b"HTTP/1.1 200 OK\r\nLOCATION:\r\n\r\n").location is None

def test_error_response_status():
    datagram = SsdpDatagram(raw_data=b"HTTP/1.1 404 Not Found\r\n\r\n")
    assert datagram.is_response
    assert datagram.status_code == 404

def test_request_is_not_response():
    datagram = SsdpDatagram(raw_data=b'NOTIFY * HTTP/1.1\r\nNT: upnp:rootdevice\r\n\r\n')
    assert not datagram.is_response
    assert datagram.status_code is None

def test_constructor_arguments_are_exclusive():
    with pytest.raises(ValueError):
        SsdpDatagram()
    with pytest.raises(ValueError):
        SsdpDatagram("HTTP/1.1 200 OK", raw_data=b"HTTP/1.1 200 OK\r\n\r\n")
