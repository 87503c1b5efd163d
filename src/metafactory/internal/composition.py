from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from metafactory.errors import InvalidFragmentError, NotAFactoryError
from metafactory.internal.loader import load_functions
from metafactory.internal.values import is_plain_mapping, merge_all
from metafactory.model.state import FactoryState, StateFragment

COMBINATOR_NAMES: tuple[str, ...] = (
    "methods",
    "props",
    "refs",
    "statics",
    "init",
    "compose",
    "create",
)

_STATE_FIELDS: tuple[str, ...] = ("methods", "props", "refs", "statics", "init")

# Installed on every instance class; points back at the building factory.
RESERVED_METHOD_NAMES: frozenset[str] = frozenset({"__factory__"})


@runtime_checkable
class FactoryLike(Protocol):
    """
    Structural contract for anything that can take part in composition.

    Nothing has to inherit from this: a value qualifies when it is callable,
    exposes every combinator and carries a state-shaped `fixed` record.
    """

    @property
    def fixed(self) -> FactoryState: ...

    def __call__(self, instance_state: Mapping[str, Any] | None = None, *args: Any) -> Any: ...

    def methods(self, *sources: Mapping[str, Any] | None) -> FactoryLike: ...

    def props(self, *sources: Mapping[str, Any] | None) -> FactoryLike: ...

    def refs(self, *sources: Mapping[str, Any] | None) -> FactoryLike: ...

    def statics(self, *sources: Mapping[str, Any] | None) -> FactoryLike: ...

    def init(self, *sources: Any) -> FactoryLike: ...

    def compose(self, *factories: FactoryLike) -> FactoryLike: ...

    def create(self, instance_state: Mapping[str, Any] | None = None, *args: Any) -> Any: ...


def has_state_shape(value: Any) -> bool:
    return value is not None and all(hasattr(value, name) for name in _STATE_FIELDS)


def is_factory(value: Any) -> bool:
    """
    True iff value is callable, exposes the combinator operations and carries
    a factory state. This is a shape check, not an identity check.
    """
    if not callable(value) or not isinstance(value, FactoryLike):
        return False
    if not all(callable(getattr(value, name, None)) for name in COMBINATOR_NAMES):
        return False
    return has_state_shape(getattr(value, "fixed", None))


# --------------------------------------------------------------------------- #
# State merge
# --------------------------------------------------------------------------- #


def _assign_all(
    dst: dict[str, Any],
    src: Mapping[str, Any] | None,
    *,
    what: str,
    string_keys: bool = False,
    reserved: frozenset[str] = frozenset(),
) -> None:
    if src is None:
        return
    if not is_plain_mapping(src):
        raise InvalidFragmentError(
            f"{what} must be a dict or None, got {type(src).__name__}"
        )
    if string_keys:
        bad = [k for k in src if not isinstance(k, str)]
        if bad:
            raise InvalidFragmentError(f"{what} keys must be strings: {bad!r}")
    taken = sorted(reserved.intersection(src))
    if taken:
        raise InvalidFragmentError(f"{what} names are reserved: {taken!r}")
    dst.update(src)


def merge_states(sources: Sequence[FactoryState | StateFragment | None]) -> FactoryState:
    """
    Fold state-shaped records left to right into one new FactoryState.

    This is the only place states are combined. Direct construction, every
    combinator and composition all go through it:
      - props deep-merge
      - methods, refs and statics are assigned over earlier values
      - init lists concatenate in order

    None records and None fields are skipped. The result never shares a
    top-level table or a nested props structure with any source.
    """
    methods: dict[str, Any] = {}
    props: dict[str, Any] = {}
    refs: dict[str, Any] = {}
    statics: dict[str, Any] = {}
    init: list[Any] = []

    for src in sources:
        if src is None:
            continue
        merge_all(props, [src.props])
        _assign_all(refs, src.refs, what="refs")
        _assign_all(statics, src.statics, what="statics", string_keys=True)
        _assign_all(
            methods,
            src.methods,
            what="methods",
            string_keys=True,
            reserved=RESERVED_METHOD_NAMES,
        )
        load_functions(init, [src.init])

    return FactoryState(
        methods=methods, props=props, refs=refs, statics=statics, init=tuple(init)
    )


def compose_states(factories: Sequence[Any]) -> FactoryState:
    """
    Validate every argument against the factory contract, then fold their
    states left to right.

    Order matters: the last writer wins for methods, statics, refs and scalar
    props; initializers run earliest-composed first.
    """
    for position, candidate in enumerate(factories):
        if not is_factory(candidate):
            raise NotAFactoryError(
                f"compose argument {position} is not a factory: {type(candidate).__name__}"
            )

    state = merge_states([f.fixed for f in factories])
    logging.debug(
        f"composed {len(factories)} factories: "
        f"methods={sorted(state.methods)} init={len(state.init)}"
    )
    return state
