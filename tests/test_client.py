# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

from typing import List

import pytest

from webos_tv_client import (
    ConfigContext,
    DeviceDiscoverer,
    KeyringClientKeyStore,
    MemoryClientKeyStore,
    NoDeviceFoundError,
    SessionState,
    WebOsTvClient,
    WebOsTvClientConfig,
    WebSocketConnector,
    control_url_for_location,
)

class FixedDiscoverer(DeviceDiscoverer):
    def __init__(self, locations: List[str]):
        super().__init__()
        self.result = locations

    async def discover(self, keyword: str="") -> List[str]:
        return list(self.result)

def test_control_url_for_location():
    assert control_url_for_location("http://192.168.1.30:1637/") == "ws://192.168.1.30:3000"
    assert control_url_for_location("http://[fe80::1]:1637/desc.xml", port=3001) == "ws://[fe80::1]:3001"
    with pytest.raises(ValueError):
        control_url_for_location("not a url")

async def test_create_with_location():
    client = await WebOsTvClient.create(MemoryClientKeyStore(), location="http://192.168.1.30:1637/")
    assert client.location == "http://192.168.1.30:1637/"
    assert client.state == SessionState.DISCONNECTED
    connector = client.session.connector
    assert isinstance(connector, WebSocketConnector)
    assert connector.url == "ws://192.168.1.30:3000"

async def test_create_discovers_single_tv():
    client = await WebOsTvClient.create(
        MemoryClientKeyStore(), discoverer=FixedDiscoverer(["http://192.168.1.31:1637/"]))
    assert client.location == "http://192.168.1.31:1637/"

async def test_create_without_tv():
    with pytest.raises(NoDeviceFoundError):
        await WebOsTvClient.create(MemoryClientKeyStore(), discoverer=FixedDiscoverer([]))

async def test_from_config_uses_keyring_per_host():
    cfg = WebOsTvClientConfig()
    cfg.load_json_data(ConfigContext(os_environ={}), {
        "device_location": "http://192.168.1.32:1637/",
        "control_port": 3001,
        "keyring_service": "test-service",
        "handshake_timeout": 20,
    })
    client = await WebOsTvClient.from_config(cfg)
    assert client.session.connector.url == "ws://192.168.1.32:3001"
    assert client.session.handshake_timeout == 20.0
    key_store = client.session.key_store
    assert isinstance(key_store, KeyringClientKeyStore)
    assert str(key_store) == "KeyringClientKeyStore(service='test-service', key='192.168.1.32')"
