from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from metafactory.internal.composition import compose_states, merge_states
from metafactory.internal.construction import Instance, construct, instance_class
from metafactory.model.state import FactoryState, StateFragment


class StaticMembers(Mapping[str, Any]):
    """
    Read-only view of a factory's statics, with attribute access.

        factory.static.VERSION == factory.static["VERSION"]
    """

    __slots__ = ("_members",)

    def __init__(self, members: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_members", MappingProxyType(dict(members)))

    def __getitem__(self, key: str) -> Any:
        return self._members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._members[name]
        except KeyError:
            raise AttributeError(f"no static member {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("static members are read-only")

    def __repr__(self) -> str:
        return f"StaticMembers({dict(self._members)!r})"


@dataclass(frozen=True, slots=True, eq=False)
class Factory:
    """
    A reusable, immutable blueprint for objects.

    Calling a factory builds one instance:

        obj = factory(instance_state, *args)

    instance_state (a dict or None) is assigned over the cloned defaults, and
    args are handed to every initializer through InitContext.args. The result
    is the instance, or a coroutine resolving to it when an initializer
    returned an awaitable.

    Every combinator returns a new factory and leaves the receiver untouched.
    """

    fixed: FactoryState = field(default_factory=FactoryState.empty)
    static: StaticMembers = field(init=False, repr=False)
    _instance_cls: type[Instance] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "static", StaticMembers(self.fixed.statics))
        object.__setattr__(
            self, "_instance_cls", instance_class(self.fixed.methods, self)
        )

    def __call__(
        self, instance_state: Mapping[str, Any] | None = None, *args: Any
    ) -> Any:
        return construct(self, self._instance_cls, instance_state, args)

    def __instancecheck__(self, instance: Any) -> bool:
        return isinstance(instance, self._instance_cls)

    def _extended(self, *fragments: StateFragment) -> Factory:
        return Factory(merge_states([self.fixed, *fragments]))

    # ------------------------------------------------------------------ #
    # Combinators
    # ------------------------------------------------------------------ #

    def methods(self, *sources: Mapping[str, Any] | None) -> Factory:
        return self._extended(*(StateFragment(methods=s) for s in sources))

    def props(self, *sources: Mapping[str, Any] | None) -> Factory:
        """Deep-merge default instance data over the current defaults."""
        return self._extended(*(StateFragment(props=s) for s in sources))

    def state(self, *sources: Mapping[str, Any] | None) -> Factory:
        return self.props(*sources)

    def refs(self, *sources: Mapping[str, Any] | None) -> Factory:
        return self._extended(*(StateFragment(refs=s) for s in sources))

    def statics(self, *sources: Mapping[str, Any] | None) -> Factory:
        return self._extended(*(StateFragment(statics=s) for s in sources))

    def init(self, *sources: Any) -> Factory:
        """
        Append initializers. Each source may be a callable, a list of
        callables or a dict of callables.
        """
        return self._extended(*(StateFragment(init=s) for s in sources))

    def enclose(self, *sources: Any) -> Factory:
        return self.init(*sources)

    def compose(self, *factories: Any) -> Factory:
        return Factory(compose_states([self, *factories]))

    def create(
        self, instance_state: Mapping[str, Any] | None = None, *args: Any
    ) -> Any:
        return self(instance_state, *args)
