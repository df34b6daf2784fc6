#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
  from .protocol import Response

class WebOsTvError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class ConfigError(WebOsTvError):
  """The client configuration is invalid."""
  pass

class StoreError(WebOsTvError):
  """The client key store could not be read or written."""
  pass

# ======================= Discovery

class DiscoveryError(WebOsTvError):
  """Device discovery failed."""
  pass

class NoDeviceFoundError(DiscoveryError):
  def __init__(self, msg: Optional[str]=None):
    super().__init__("No devices were discovered" if msg is None else msg)

class AmbiguousDeviceError(DiscoveryError):
  locations: List[str]

  def __init__(self, locations: Sequence[str]):
    self.locations = list(locations)
    super().__init__(
        f"Multiple devices were discovered, please specify a more concrete keyword: {', '.join(self.locations)}")

class ProbeFailedError(DiscoveryError):
  """The multicast probe could not be sent, or the discovery socket failed."""
  pass

class DeviceValidationError(DiscoveryError):
  """None of the candidate device descriptors could be fetched."""
  pass

# ======================= Handshake

class HandshakeError(WebOsTvError):
  """Pairing with the TV failed."""
  pass

class HandshakeTransportError(HandshakeError):
  """The connection failed or produced no response before pairing completed."""
  pass

class RegistrationRejectedError(HandshakeError):
  detail: str

  def __init__(self, detail: str):
    self.detail = detail
    super().__init__(f"Failed to register client: {detail}")

class UnsupportedResponseError(HandshakeError):
  frame: str

  def __init__(self, msg: str, frame: str):
    self.frame = frame
    super().__init__(f"{msg}: {frame}")

class MalformedPayloadError(HandshakeError):
  """A handshake frame could not be decoded, or lacked a required field."""
  pass

# ======================= Session

class MalformedFrameError(WebOsTvError, ValueError):
  """A received frame does not match the response envelope."""
  pass

class RemoteError(WebOsTvError):
  """The TV answered a request with an error response."""
  detail: str
  response: Optional[Response]

  def __init__(self, detail: str, response: Optional[Response]=None):
    self.detail = detail
    self.response = response
    super().__init__(detail)

class TransportError(WebOsTvError):
  """The session's connection failed after pairing."""
  pass

class ConnectionLostError(TransportError):
  pass

class WriteFailedError(TransportError):
  pass
