from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, TypedDict


class LegacyConversionPolicy(str, Enum):
    """
    Controls which class attributes the legacy adapter turns into methods.

    FLATTEN: walk the whole MRO; base classes first, subclasses override.
    OWN_ONLY: only the attributes defined directly on the converted class.
    """

    FLATTEN = "flatten"
    OWN_ONLY = "own_only"


class FactoryOptions(TypedDict, total=False):
    """
    Options-record form of the factory fragments.

    Keys:
      - methods: mapping of shared behaviour
      - props: default instance data (deep-merged, deep-cloned per instance)
      - refs: values assigned by reference into every instance
      - statics: members exposed on the factory
      - init: a callable, a list of callables, or a dict of callables
    """

    methods: Mapping[str, Any]
    props: Mapping[str, Any]
    refs: Mapping[str, Any]
    statics: Mapping[str, Any]
    init: Any
