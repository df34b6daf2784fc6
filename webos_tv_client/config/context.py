# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration context.

A ConfigContext is the set of variables available to `$name` substitutions in a
configuration document. Each environment variable NAME is exposed as `env_NAME`.
"""

from __future__ import annotations

from typing import Optional, Dict, Any, TextIO, TYPE_CHECKING

import os
import json
from collections import UserDict
from copy import deepcopy
from string import Template

from ..internal_types import Jsonable
from ..exceptions import ConfigError
from ..util import full_type

if TYPE_CHECKING:
  from .client_config import WebOsTvClientConfig

ENV_VAR_PREFIX = "env_"

class ConfigDict(UserDict):
  pass

class ConfigContext(ConfigDict):
  def __init__(self, globals: Optional[Dict[str, Any]]=None, os_environ: Optional[Dict[str, str]]=None):
    super().__init__()
    if not globals is None:
      globals = deepcopy(globals)
      self.update(globals)
    if os_environ is None:
      os_environ = dict(os.environ)
    for k, v in os_environ.items():
      self[f"{ENV_VAR_PREFIX}{k}"] = v

  def clone(self) -> ConfigContext:
    result = deepcopy(self)
    return result

  def getenv(self, name: str, default: Optional[str]=None) -> Optional[str]:
    return self.get(f"{ENV_VAR_PREFIX}{name}", default)

  def render_template_str(self, template_str: str) -> str:
    t: Template = Template(template_str)
    try:
      result: str = t.substitute(self)
    except KeyError as e:
      raise ConfigError(f"ConfigContext: undefined variable ${e.args[0]} in configuration") from e
    except ValueError as e:
      raise ConfigError(f"ConfigContext: invalid substitution in configuration: {e}") from e
    return result

  def render_template_json_data(self, template_json_data: Jsonable) -> Jsonable:
    template_str = json.dumps(template_json_data)
    json_text: str = self.render_template_str(template_str)
    result: Jsonable = json.loads(json_text)
    return result

  def push_config_file(self, config_file: Optional[str]) -> ConfigContext:
    ctx = self.clone()
    ctx.set_config_file(config_file)
    return ctx

  @property
  def config_file(self) -> Optional[str]:
    return self.get('config_file', None)

  def set_config_file(self, config_file: Optional[str]=None):
    if config_file is None:
      for propname in ['config_file', 'config_dir']:
        if propname in self:
          del self[propname]
    else:
      config_file = os.path.abspath(os.path.expanduser(config_file))
      self['config_file'] = config_file
      self['config_dir'] = os.path.dirname(config_file)

  @property
  def config_dir(self) -> Optional[str]:
    return self.get('config_dir', None)

  def loads(self, s: str) -> WebOsTvClientConfig:
    from .client_config import WebOsTvClientConfig
    try:
      data: Jsonable = json.loads(s)
    except ValueError as e:
      raise ConfigError(f"ConfigContext: configuration is not valid JSON: {e}") from e
    if not isinstance(data, dict):
      raise ConfigError(f"ConfigContext: expected json dict, got {full_type(data)}")
    cfg = WebOsTvClientConfig()
    cfg.load_json_data(self, data)
    return cfg

  def load_stream(self, stream: TextIO) -> WebOsTvClientConfig:
    s = stream.read()
    cfg = self.loads(s)
    return cfg

  def load_file(self, config_file: str) -> WebOsTvClientConfig:
    ctx = self.push_config_file(config_file)
    try:
      with open(os.path.expanduser(config_file)) as f:
        cfg = ctx.load_stream(f)
    except OSError as e:
      raise ConfigError(f"ConfigContext: unable to read configuration file {config_file}: {e}") from e
    return cfg
