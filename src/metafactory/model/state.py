from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

if TYPE_CHECKING:
    from metafactory.factory import Factory

Initializer = Callable[["InitContext"], Any]


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(mapping, MappingProxyType):
        return mapping
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class FactoryState:
    """
    The fixed configuration a factory carries.

    A state is never modified after construction. Top-level tables are exposed
    as read-only mapping views and the initializer list as a tuple; every
    combinator builds a new state instead.

    Attributes:
        methods: Shared behaviour. Installed on the instance class, never
            copied into instances.
        props: Default instance data, deep-cloned into every new instance.
        refs: Values assigned by reference into every new instance.
        statics: Members exposed on the factory itself.
        init: Initializers, run in order once per instantiation.
    """

    methods: Mapping[str, Any] = field(default_factory=dict)
    props: Mapping[str, Any] = field(default_factory=dict)
    refs: Mapping[str, Any] = field(default_factory=dict)
    statics: Mapping[str, Any] = field(default_factory=dict)
    init: tuple[Initializer, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "methods", _frozen(self.methods))
        object.__setattr__(self, "props", _frozen(self.props))
        object.__setattr__(self, "refs", _frozen(self.refs))
        object.__setattr__(self, "statics", _frozen(self.statics))
        object.__setattr__(self, "init", tuple(self.init))

    @classmethod
    def empty(cls) -> Self:
        return cls()

    def to_mapping(self) -> dict[str, Any]:
        return {
            "methods": dict(self.methods),
            "props": dict(self.props),
            "refs": dict(self.refs),
            "statics": dict(self.statics),
            "init": list(self.init),
        }


@dataclass(frozen=True, slots=True)
class StateFragment:
    """
    Raw, unvalidated pieces of a state, as handed in by callers.

    Every field may be None. A fragment is only ever read by the state merge,
    which validates it.
    """

    methods: Mapping[str, Any] | None = None
    props: Mapping[str, Any] | None = None
    refs: Mapping[str, Any] | None = None
    statics: Mapping[str, Any] | None = None
    init: Any = None


@dataclass(frozen=True, slots=True)
class InitContext:
    """
    What an initializer receives.

    args holds the positional call arguments that follow the instance state,
    instance is the object as the previous initializer left it, and factory is
    the factory that was called.
    """

    args: tuple[Any, ...]
    instance: Any
    factory: Factory

    def with_instance(self, instance: Any) -> Self:
        return type(self)(args=self.args, instance=instance, factory=self.factory)
