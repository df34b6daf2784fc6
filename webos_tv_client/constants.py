# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

SSDP_MULTICAST_ADDRESS = "239.255.255.250"
"""The multicast address used by SSDP for UDP multicast."""

SSDP_PORT = 1900
"""The port number used by SSDP for UDP multicast."""

SSDP_MULTICAST_TTL = 2
"""The multicast hop count for discovery probes. Keeps probes on the local segment."""

SSDP_MX = 2
"""The MX (maximum wait, in seconds) hint sent to responders in an M-SEARCH probe."""

DEFAULT_RESPONSE_WAIT_TIME = 5.0
"""The default amount of time (in seconds) to wait for discovery replies to come in. There is
   no end-of-replies signal in SSDP, so silence for this long ends the search."""

MEDIA_RENDERER_SERVICE_TYPE = "urn:schemas-upnp-org:device:MediaRenderer:1"
"""The SSDP search target advertised by webOS TVs."""

LG_TV_MODEL_NAME_TAG = "<modelName>LG TV</modelName>"
"""The default keyword that must appear in a device descriptor for it to be considered a webOS TV."""

DEFAULT_DESCRIPTOR_FETCH_TIMEOUT = 5.0
"""Timeout (in seconds) for fetching a candidate device's descriptor document."""

DEFAULT_CONTROL_PORT = 3000
"""The TCP port on which the TV accepts websocket control connections."""
