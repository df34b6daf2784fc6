# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration support.

"""

from __future__ import annotations

from typing import Optional, Any, List, TypeVar, Union, overload

import os
import json

from ..internal_types import Jsonable, JsonableDict, JsonableTypes
from ..exceptions import ConfigError
from ..util import full_type
from .context import ConfigContext

_T = TypeVar('_T')

class Config:
  _template_json_data: Optional[JsonableDict] = None
  _json_data: Optional[JsonableDict] = None
  _context: Optional[ConfigContext] = None

  def __init__(self):
    pass

  def get_context(self) -> ConfigContext:
    result = self._context
    assert not result is None
    return result

  def bake(self):
    pass

  @property
  def config_file(self) -> Optional[str]:
    """The fully qualified pathname of the configuration file from which this Config
       originated, or None if not from a file"""
    if self._context is None:
      return None
    return self._context.config_file

  @property
  def config_dir(self) -> Optional[str]:
    config_file = self.config_file
    return None if config_file is None else os.path.dirname(config_file)

  def render(self):
    rendered = self.get_context().render_template_json_data(self._template_json_data)
    if not isinstance(rendered, dict):
      raise ConfigError(f"Config: expected rendered config to be dict, got {full_type(rendered)}")
    self._json_data = rendered

  def render_and_bake(self, context: ConfigContext):
    self._context = context.clone()
    self.render()
    self.bake()

  def load_json_data(self, ctx: ConfigContext, json_data: JsonableDict):
    self._template_json_data = json.loads(json.dumps(json_data))
    self.render_and_bake(ctx)

  _no_default = object()

  @overload
  def get_cfg_property(self, key: str, default: _T) -> Union[Jsonable, _T]: pass

  @overload
  def get_cfg_property(self, key: str) -> Jsonable: pass

  def get_cfg_property(self, key: str, default = _no_default):
    if not isinstance(self._json_data, dict):
      raise ConfigError(f"Config: Expected config data to be dict, got {full_type(self._json_data)}")
    result = self._json_data.get(key, default)
    if result is self._no_default:
      raise ConfigError(f"Config: Property {key} does not exist and has no default")
    if not result is None and result is not default and not isinstance(result, JsonableTypes):
      raise ConfigError(f"Config: Expected property {key} to be JSON-able, got {full_type(result)}")
    return result

  def get_cfg_property_str(self, key: str, default: Any=_no_default) -> Any:
    result = self.get_cfg_property(key, default)
    if result is not default and not isinstance(result, str):
      raise ConfigError(f"Config: Expected property {key} to be str, got {full_type(result)}")
    return result

  def get_cfg_property_int(self, key: str, default: Any=_no_default) -> Any:
    result = self.get_cfg_property(key, default)
    if result is default:
      return result
    if isinstance(result, str):
      try:
        result = int(result)
      except ValueError:
        pass
    if isinstance(result, bool) or not isinstance(result, int):
      raise ConfigError(f"Config: Expected property {key} to be int, got {full_type(result)}")
    return result

  def get_cfg_property_float(self, key: str, default: Any=_no_default) -> Any:
    result = self.get_cfg_property(key, default)
    if result is default:
      return result
    if isinstance(result, str):
      try:
        result = float(result)
      except ValueError:
        pass
    if isinstance(result, bool) or not isinstance(result, (int, float)):
      raise ConfigError(f"Config: Expected property {key} to be a number, got {full_type(result)}")
    return float(result)

  def get_cfg_property_str_list(self, key: str, default: Any=_no_default) -> Any:
    result = self.get_cfg_property(key, default)
    if result is default:
      return result
    if isinstance(result, str):
      result = [x.strip() for x in result.split(',') if x.strip() != '']
    if not isinstance(result, list) or not all(isinstance(x, str) for x in result):
      raise ConfigError(f"Config: Expected property {key} to be a list of str, got {full_type(result)}")
    str_list: List[str] = result
    return str_list
