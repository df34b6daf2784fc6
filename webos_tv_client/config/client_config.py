# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Client configuration.

A configuration file is a JSON object; every string in it may use `$name` substitutions
against the ConfigContext, e.g.:

    {
      "device_location": "http://${env_TV_HOST}:1826/",
      "response_wait_time": 3
    }
"""

from __future__ import annotations

from typing import Optional, List

import os

from ..constants import (
    LG_TV_MODEL_NAME_TAG,
    MEDIA_RENDERER_SERVICE_TYPE,
    DEFAULT_RESPONSE_WAIT_TIME,
    DEFAULT_CONTROL_PORT,
  )
from ..client_key_store import DEFAULT_KEYRING_SERVICE
from ..exceptions import ConfigError
from .base import Config
from .context import ConfigContext

CONFIG_FILE_ENV_VAR = "WEBOS_TV_CONFIG"
LOCATION_ENV_VAR = "WEBOS_TV_LOCATION"

class WebOsTvClientConfig(Config):
  keyword: str = LG_TV_MODEL_NAME_TAG
  service_type: str = MEDIA_RENDERER_SERVICE_TYPE
  response_wait_time: float = DEFAULT_RESPONSE_WAIT_TIME
  control_port: int = DEFAULT_CONTROL_PORT
  device_location: Optional[str] = None
  """If set, discovery is skipped and this descriptor location is used."""
  bind_addresses: Optional[List[str]] = None
  keyring_service: str = DEFAULT_KEYRING_SERVICE
  handshake_timeout: Optional[float] = None

  def bake(self):
    self.keyword = self.get_cfg_property_str('keyword', LG_TV_MODEL_NAME_TAG)
    if self.keyword == '':
      raise ConfigError("WebOsTvClientConfig: keyword must not be empty")
    self.service_type = self.get_cfg_property_str('service_type', MEDIA_RENDERER_SERVICE_TYPE)
    self.response_wait_time = self.get_cfg_property_float('response_wait_time', DEFAULT_RESPONSE_WAIT_TIME)
    if self.response_wait_time <= 0:
      raise ConfigError(f"WebOsTvClientConfig: response_wait_time must be positive, got {self.response_wait_time}")
    self.control_port = self.get_cfg_property_int('control_port', DEFAULT_CONTROL_PORT)
    if not 0 < self.control_port < 65536:
      raise ConfigError(f"WebOsTvClientConfig: invalid control_port {self.control_port}")
    device_location = self.get_cfg_property_str('device_location', None)
    if device_location == '':
      device_location = None
    env_location = self.get_context().getenv(LOCATION_ENV_VAR)
    if env_location is not None and env_location != '':
      device_location = env_location
    self.device_location = device_location
    self.bind_addresses = self.get_cfg_property_str_list('bind_addresses', None)
    self.keyring_service = self.get_cfg_property_str('keyring_service', DEFAULT_KEYRING_SERVICE)
    self.handshake_timeout = self.get_cfg_property_float('handshake_timeout', None)

  def __str__(self) -> str:
    return (f"WebOsTvClientConfig(keyword={self.keyword!r}, service_type={self.service_type!r}, "
            f"device_location={self.device_location!r}, control_port={self.control_port})")

def load_client_config(config_file: Optional[str]=None, ctx: Optional[ConfigContext]=None) -> WebOsTvClientConfig:
  """Loads the client configuration.

  If config_file is None, the file named by WEBOS_TV_CONFIG is used; if that is not set either,
  the defaults are used (still honoring WEBOS_TV_LOCATION).
  """
  if ctx is None:
    ctx = ConfigContext()
  if config_file is None:
    config_file = ctx.getenv(CONFIG_FILE_ENV_VAR)
    if config_file == '':
      config_file = None
  if config_file is None:
    cfg = WebOsTvClientConfig()
    cfg.load_json_data(ctx, {})
    return cfg
  return ctx.load_file(os.path.expanduser(config_file))
