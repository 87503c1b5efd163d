from __future__ import annotations

import numbers
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any

from metafactory.errors import (
    CyclicValueError,
    InvalidMergeSourceError,
    InvalidMergeTargetError,
    UncloneableValueError,
)

# --------------------------------------------------------------------------- #
# Value shapes
# --------------------------------------------------------------------------- #


def is_plain_mapping(value: Any) -> bool:
    """
    True for dicts and read-only dict views.

    Read-only views are what a FactoryState hands out, so they have to be
    accepted anywhere a dict is accepted as input.
    """
    return isinstance(value, (dict, MappingProxyType))


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_primitive(value: Any) -> bool:
    """
    Values that clone and merge hand over as-is.

    Callables count as primitives: methods, initializers and factories stored
    in state are shared, never copied.
    """
    if value is None:
        return True
    if isinstance(value, (str, bytes, numbers.Number)):
        return True
    return callable(value)


def _describe(value: Any) -> str:
    return f"{type(value).__module__}.{type(value).__qualname__}"


@contextmanager
def _tracking(value: Any, active: set[int]) -> Iterator[None]:
    marker = id(value)
    if marker in active:
        raise CyclicValueError(
            f"cyclic structure detected at {_describe(value)}; "
            "clone and merge only support acyclic values"
        )
    active.add(marker)
    try:
        yield
    finally:
        active.discard(marker)


# --------------------------------------------------------------------------- #
# Clone
# --------------------------------------------------------------------------- #


def _clone(value: Any, active: set[int]) -> Any:
    if is_plain_mapping(value):
        with _tracking(value, active):
            return {k: _clone(v, active) for k, v in value.items()}

    if is_sequence(value):
        with _tracking(value, active):
            items = [_clone(v, active) for v in value]
        return items if isinstance(value, list) else tuple(items)

    if is_primitive(value):
        return value

    raise UncloneableValueError(f"uncloneable value: {_describe(value)}")


def clone(value: Any) -> Any:
    """
    Structural deep copy of a plain value.

    dicts clone key-wise, lists and tuples element-wise (keeping the sequence
    type), primitives come back unchanged. Anything else raises
    UncloneableValueError; a structure that contains itself raises
    CyclicValueError.
    """
    return _clone(value, set())


# --------------------------------------------------------------------------- #
# Merge
# --------------------------------------------------------------------------- #


def _concat(existing: list | tuple, incoming: list | tuple) -> list | tuple:
    if isinstance(existing, list):
        return [*existing, *incoming]
    return (*existing, *incoming)


def _merge_value(
    dst: dict[str, Any], key: Any, incoming: Any, active: set[int]
) -> None:
    if key in dst:
        existing = dst[key]
        if isinstance(existing, dict) and is_plain_mapping(incoming):
            _merge_into(existing, (incoming,), active)
            return
        if is_sequence(existing) and is_sequence(incoming):
            dst[key] = _concat(existing, _clone(incoming, active))
            return

    dst[key] = _clone(incoming, active)


def _merge_into(
    dst: dict[str, Any],
    sources: Sequence[Mapping[str, Any] | None],
    active: set[int],
) -> dict[str, Any]:
    for src in sources:
        if src is None:
            continue
        if not is_plain_mapping(src):
            raise InvalidMergeSourceError(
                f"merge source must be a dict or None, got {_describe(src)}"
            )
        with _tracking(src, active):
            for key, incoming in src.items():
                _merge_value(dst, key, incoming, active)
    return dst


def merge_all(
    dst: dict[str, Any], sources: Sequence[Mapping[str, Any] | None]
) -> dict[str, Any]:
    """
    Fold sources into dst in order and return dst.

    Rules, applied per key:
      - dict into dict merges recursively, in place
      - sequence onto sequence concatenates (existing items first)
      - everything else is cloned and overwrites

    None sources are skipped. dst is mutated; callers that need an untouched
    input pass a fresh dict as dst.
    """
    if not isinstance(dst, dict):
        raise InvalidMergeTargetError(
            f"merge target must be a dict, got {_describe(dst)}"
        )
    return _merge_into(dst, sources, set())


def merge(dst: dict[str, Any], *sources: Mapping[str, Any] | None) -> dict[str, Any]:
    return merge_all(dst, sources)
