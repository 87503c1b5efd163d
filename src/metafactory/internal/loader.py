from __future__ import annotations

from collections.abc import Iterable, MutableSequence
from typing import Any

from metafactory.errors import InvalidInitializerError
from metafactory.internal.values import is_plain_mapping, is_sequence
from metafactory.model.state import Initializer


def _iter_candidates(source: Any) -> Iterable[Any]:
    if source is None:
        return ()
    if is_sequence(source):
        return source
    if is_plain_mapping(source):
        # Grouping initializers under names only documents them; order is the
        # mapping's insertion order.
        return source.values()
    return (source,)


def _validated(source: Any) -> list[Initializer]:
    out: list[Initializer] = []
    for candidate in _iter_candidates(source):
        if not callable(candidate):
            raise InvalidInitializerError(
                "initializers must be callables, or a list/dict of callables; "
                f"got {type(candidate).__name__}: {candidate!r}"
            )
        out.append(candidate)
    return out


def load_functions(
    dst: MutableSequence[Initializer], sources: Iterable[Any]
) -> MutableSequence[Initializer]:
    """
    Append every initializer found in sources to dst and return dst.

    A source may be a single callable, a list/tuple of callables, or a dict
    whose values are callables. None sources are skipped. If any entry is not
    callable the call fails and dst is left untouched.
    """
    scratch: list[Initializer] = []
    for source in sources:
        scratch.extend(_validated(source))
    dst.extend(scratch)
    return dst
