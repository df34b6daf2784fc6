#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used throughout this package. Intended to be imported with "from .internal_types import *"."""

from __future__ import annotations

from typing import (
    Any, Awaitable, Callable, Dict, Iterable, List, Mapping, MutableMapping,
    Optional, Sequence, Set, Tuple, Type, TypeVar, Union, cast,
    AsyncContextManager, AsyncIterable, AsyncIterator,
  )

from types import TracebackType

from typing_extensions import Self, SupportsIndex

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A value that can be represented in JSON"""

JsonableDict = Dict[str, Jsonable]
"""A JSON object"""

JsonableTypes = (str, int, float, bool, dict, list)
"""Types that may be passed to isinstance() to check for a non-null Jsonable value"""

HostAndPort = Tuple[str, int]
"""A (host, port) socket address"""

__all__ = [
    'Any', 'Awaitable', 'Callable', 'Dict', 'Iterable', 'List', 'Mapping', 'MutableMapping',
    'Optional', 'Sequence', 'Set', 'Tuple', 'Type', 'TypeVar', 'Union', 'cast',
    'AsyncContextManager', 'AsyncIterable', 'AsyncIterator',
    'TracebackType', 'Self', 'SupportsIndex',
    'Jsonable', 'JsonableDict', 'JsonableTypes', 'HostAndPort',
]
