# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Storage for the client key granted by a TV when pairing succeeds.

The session reads the key once before the handshake and writes it once after the TV grants
registration. It never looks inside the key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import keyring
from keyring.errors import KeyringError

from .exceptions import StoreError

DEFAULT_KEYRING_SERVICE = "webos-tv-client"

class ClientKeyStore(ABC):
  """Abstract client key store."""

  @abstractmethod
  def get_client_key(self) -> Optional[str]:
    """Returns the stored client key, or None if the client has never paired.

    Raises StoreError if the store cannot be read."""
    raise NotImplementedError()

  @abstractmethod
  def set_client_key(self, key: str) -> None:
    """Stores a client key. Raises StoreError if the store cannot be written."""
    raise NotImplementedError()

class MemoryClientKeyStore(ClientKeyStore):
  """A client key store that lives only as long as the process."""
  _key: Optional[str]

  def __init__(self, key: Optional[str]=None):
    self._key = key

  def get_client_key(self) -> Optional[str]:
    return self._key

  def set_client_key(self, key: str) -> None:
    self._key = key

class KeyringClientKeyStore(ClientKeyStore):
  """A client key store backed by the OS keyring. One entry per TV, keyed by key_name
     (typically the TV's host)."""
  _keyring_service: str
  _keyring_key: str

  def __init__(self, key_name: str, service: str=DEFAULT_KEYRING_SERVICE):
    self._keyring_service = service
    self._keyring_key = key_name

  def get_client_key(self) -> Optional[str]:
    try:
      result = keyring.get_password(self._keyring_service, self._keyring_key)
    except KeyringError as e:
      raise StoreError(f"KeyringClientKeyStore: unable to read service '{self._keyring_service}', key name '{self._keyring_key}': {e}") from e
    if result == '':
      result = None
    return result

  def set_client_key(self, key: str) -> None:
    try:
      keyring.set_password(self._keyring_service, self._keyring_key, key)
    except KeyringError as e:
      raise StoreError(f"KeyringClientKeyStore: unable to write service '{self._keyring_service}', key name '{self._keyring_key}': {e}") from e

  def delete_client_key(self) -> None:
    try:
      keyring.delete_password(self._keyring_service, self._keyring_key)
    except KeyringError as e:
      raise StoreError(f"KeyringClientKeyStore: unable to delete service '{self._keyring_service}', key name '{self._keyring_key}': {e}") from e

  def __str__(self) -> str:
    return f"KeyringClientKeyStore(service={self._keyring_service!r}, key={self._keyring_key!r})"
