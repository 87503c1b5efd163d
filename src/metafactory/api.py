from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from metafactory.errors import InvalidFragmentError
from metafactory.factory import Factory, StaticMembers
from metafactory.internal.composition import compose_states, is_factory, merge_states
from metafactory.internal.values import clone, merge
from metafactory.legacy import convert_legacy_constructor, legacy_state
from metafactory.model.options import FactoryOptions, LegacyConversionPolicy
from metafactory.model.state import FactoryState, InitContext, StateFragment

__all__ = [
    "Factory",
    "FactoryOptions",
    "FactoryState",
    "InitContext",
    "LegacyConversionPolicy",
    "StaticMembers",
    "clone",
    "compose",
    "convert_legacy_constructor",
    "create",
    "create_from_options",
    "enclose",
    "init",
    "is_factory",
    "legacy_state",
    "merge",
    "methods",
    "props",
    "refs",
    "state",
    "statics",
]


def create(
    methods: Mapping[str, Any] | None = None,
    state: Mapping[str, Any] | None = None,
    initializers: Any = None,
) -> Factory:
    """
    Build a factory from raw fragments.

    Args:
        methods: Shared behaviour; functions receive the instance as `self`.
        state: Default instance data, deep-cloned into every instance.
        initializers: A callable, a list of callables or a dict of callables,
            run in order with an InitContext once per instantiation.

    Raises:
        InvalidFragmentError: methods is not a dict.
        InvalidMergeSourceError: state is not a dict.
        InvalidInitializerError: an initializer entry is not callable.
    """
    return Factory(
        merge_states(
            [StateFragment(methods=methods, props=state, init=initializers)]
        )
    )


def create_from_options(options: FactoryOptions | None = None) -> Factory:
    """
    Build a factory from an options record with the keys methods, props,
    refs, statics and init (all optional).
    """
    options = options or {}
    if not isinstance(options, Mapping):
        raise InvalidFragmentError(
            f"factory options must be a mapping, got {type(options).__name__}"
        )
    return Factory(
        merge_states(
            [
                StateFragment(
                    methods=options.get("methods"),
                    props=options.get("props"),
                    refs=options.get("refs"),
                    statics=options.get("statics"),
                    init=options.get("init"),
                )
            ]
        )
    )


def compose(*factories: Any) -> Factory:
    """
    Combine factories left to right into a new one.

    Last writer wins for methods, statics, refs and scalar props; nested props
    deep-merge; initializers run in argument order.
    """
    return Factory(compose_states(factories))


# Shortcuts: each applies one combinator to an empty factory.


def methods(*sources: Mapping[str, Any] | None) -> Factory:
    return Factory().methods(*sources)


def props(*sources: Mapping[str, Any] | None) -> Factory:
    return Factory().props(*sources)


def state(*sources: Mapping[str, Any] | None) -> Factory:
    return Factory().state(*sources)


def refs(*sources: Mapping[str, Any] | None) -> Factory:
    return Factory().refs(*sources)


def statics(*sources: Mapping[str, Any] | None) -> Factory:
    return Factory().statics(*sources)


def init(*sources: Any) -> Factory:
    return Factory().init(*sources)


def enclose(*sources: Any) -> Factory:
    return Factory().enclose(*sources)
