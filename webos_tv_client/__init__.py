# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package webos_tv_client is a client for LG webOS TVs on the local network.

A TV is found by multicasting an SSDP M-SEARCH probe for UPnP media renderers and
fetching the device descriptor at each advertised LOCATION; LG TVs are recognized by
a keyword in the descriptor (by default their "<modelName>LG TV</modelName>" tag).

The TV is then controlled through a JSON-over-websocket protocol on port 3000 of the
same host. A connection starts with a pairing handshake: the client sends a registration
manifest (and the client key from a previous pairing, if any); if there is no valid key,
the TV asks its user to accept the connection on screen, then grants a new client key.

After pairing, any number of concurrent callers may each send a request and wait for
its own response; responses are matched to requests by their "id" field, in any order.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict

from .exceptions import (
    WebOsTvError,
    ConfigError,
    StoreError,
    DiscoveryError,
    NoDeviceFoundError,
    AmbiguousDeviceError,
    ProbeFailedError,
    DeviceValidationError,
    HandshakeError,
    HandshakeTransportError,
    RegistrationRejectedError,
    UnsupportedResponseError,
    MalformedPayloadError,
    MalformedFrameError,
    RemoteError,
    TransportError,
    ConnectionLostError,
    WriteFailedError,
  )

from .ssdp_datagram import SsdpDatagram
from .ssdp_socket import SsdpSocket, SsdpSocketBinding, SsdpDatagramSubscriber
from .discovery import (
    SsdpClient,
    SsdpSearchRequest,
    SsdpResponseInfo,
    DeviceDiscoverer,
    discover,
    select_device_location,
    resolve_device_location,
  )
from .protocol import (
    Message,
    Response,
    SuccessResponse,
    ErrorResponse,
    RegisteredResponse,
    UnknownResponse,
    decode_response,
    create_registration_message,
    load_registration_payload,
  )
from .client_key_store import ClientKeyStore, MemoryClientKeyStore, KeyringClientKeyStore
from .connector import FrameChannel, WebOsConnector, WebSocketConnector, control_url_for_location
from .dispatcher import MessageDispatcher
from .session import WebOsSession, SessionState
from .client import WebOsTvClient
from .config import WebOsTvClientConfig, ConfigContext, load_client_config
from .util import CaseInsensitiveDict
from .constants import (
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    MEDIA_RENDERER_SERVICE_TYPE,
    LG_TV_MODEL_NAME_TAG,
    DEFAULT_RESPONSE_WAIT_TIME,
    DEFAULT_CONTROL_PORT,
  )

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict',
    'WebOsTvError', 'ConfigError', 'StoreError',
    'DiscoveryError', 'NoDeviceFoundError', 'AmbiguousDeviceError', 'ProbeFailedError', 'DeviceValidationError',
    'HandshakeError', 'HandshakeTransportError', 'RegistrationRejectedError', 'UnsupportedResponseError',
    'MalformedPayloadError', 'MalformedFrameError', 'RemoteError',
    'TransportError', 'ConnectionLostError', 'WriteFailedError',
    'SsdpDatagram',
    'SsdpSocket', 'SsdpSocketBinding', 'SsdpDatagramSubscriber',
    'SsdpClient', 'SsdpSearchRequest', 'SsdpResponseInfo',
    'DeviceDiscoverer', 'discover', 'select_device_location', 'resolve_device_location',
    'Message', 'Response', 'SuccessResponse', 'ErrorResponse', 'RegisteredResponse', 'UnknownResponse',
    'decode_response', 'create_registration_message', 'load_registration_payload',
    'ClientKeyStore', 'MemoryClientKeyStore', 'KeyringClientKeyStore',
    'FrameChannel', 'WebOsConnector', 'WebSocketConnector', 'control_url_for_location',
    'MessageDispatcher',
    'WebOsSession', 'SessionState',
    'WebOsTvClient',
    'WebOsTvClientConfig', 'ConfigContext', 'load_client_config',
    'CaseInsensitiveDict',
    'SSDP_MULTICAST_ADDRESS', 'SSDP_PORT', 'MEDIA_RENDERER_SERVICE_TYPE', 'LG_TV_MODEL_NAME_TAG',
    'DEFAULT_RESPONSE_WAIT_TIME', 'DEFAULT_CONTROL_PORT',
]
