# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

from typing import Dict, Optional, Tuple

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from webos_tv_client import KeyringClientKeyStore, MemoryClientKeyStore, StoreError

class DictKeyring(KeyringBackend):
    priority = 1  # type: ignore[assignment]

    def __init__(self):
        super().__init__()
        self.passwords: Dict[Tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> Optional[str]:
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if (service, username) not in self.passwords:
            raise PasswordDeleteError("not found")
        del self.passwords[(service, username)]

class BrokenKeyring(DictKeyring):
    def get_password(self, service: str, username: str) -> Optional[str]:
        raise KeyringError("locked")

    def set_password(self, service: str, username: str, password: str) -> None:
        raise KeyringError("locked")

@pytest.fixture
def dict_keyring():
    previous = keyring.get_keyring()
    backend = DictKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)

@pytest.fixture
def broken_keyring():
    previous = keyring.get_keyring()
    keyring.set_keyring(BrokenKeyring())
    yield
    keyring.set_keyring(previous)

def test_memory_store():
    store = MemoryClientKeyStore()
    assert store.get_client_key() is None
    store.set_client_key("abc")
    assert store.get_client_key() == "abc"

def test_keyring_store_round_trip(dict_keyring: DictKeyring):
    store = KeyringClientKeyStore("192.168.1.30")
    assert store.get_client_key() is None
    store.set_client_key("abc")
    assert dict_keyring.passwords == {("webos-tv-client", "192.168.1.30"): "abc"}
    assert KeyringClientKeyStore("192.168.1.30").get_client_key() == "abc"
    assert KeyringClientKeyStore("192.168.1.31").get_client_key() is None
    store.delete_client_key()
    assert store.get_client_key() is None
    with pytest.raises(StoreError):
        store.delete_client_key()

def test_keyring_empty_value_is_no_key(dict_keyring: DictKeyring):
    dict_keyring.passwords[("webos-tv-client", "tv")] = ""
    assert KeyringClientKeyStore("tv").get_client_key() is None

def test_keyring_errors_become_store_errors(broken_keyring):
    store = KeyringClientKeyStore("192.168.1.30")
    with pytest.raises(StoreError):
        store.get_client_key()
    with pytest.raises(StoreError):
        store.set_client_key("abc")
