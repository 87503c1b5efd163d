from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from metafactory.errors import InvalidInstanceStateError
from metafactory.internal.values import is_plain_mapping, merge_all
from metafactory.model.state import FactoryState, InitContext, Initializer


class Instance:
    """
    Base class of every object a factory builds.

    Each factory derives its own subclass carrying the factory's methods, so
    method lookup goes through the class and fields set on the instance take
    precedence over methods of the same name.
    """

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


def instance_class(
    methods: Mapping[str, Any], factory: Any, name: str = "Instance"
) -> type[Instance]:
    namespace: dict[str, Any] = dict(methods)
    namespace["__factory__"] = factory
    namespace["__module__"] = __name__
    return type(name, (Instance,), namespace)


# --------------------------------------------------------------------------- #
# Initializer outcomes
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class Unchanged:
    pass


@dataclass(frozen=True, slots=True)
class Replaced:
    instance: Any


@dataclass(frozen=True, slots=True)
class Deferred:
    pending: Awaitable[Any]


InitOutcome = Unchanged | Replaced | Deferred

UNCHANGED = Unchanged()


def classify(result: Any) -> InitOutcome:
    """
    None and other falsy results (0, False, "", empty containers) leave the
    instance as it is; an awaitable defers; any other value replaces it.
    """
    if inspect.isawaitable(result):
        return Deferred(pending=result)
    if not result:
        return UNCHANGED
    return Replaced(instance=result)


# --------------------------------------------------------------------------- #
# Construction
# --------------------------------------------------------------------------- #


def new_instance(
    cls: type[Instance],
    state: FactoryState,
    instance_state: Mapping[str, Any] | None,
) -> Instance:
    """
    Allocate an instance and lay down its data: cloned props, then refs, then
    the caller's instance state, each overriding the previous layer.
    """
    if instance_state is not None and not is_plain_mapping(instance_state):
        raise InvalidInstanceStateError(
            f"instance state must be a dict or None, got {type(instance_state).__name__}"
        )

    obj = object.__new__(cls)
    fields = vars(obj)
    merge_all(fields, [state.props])
    fields.update(state.refs)
    if instance_state:
        fields.update(instance_state)
    return obj


def _apply(ctx: InitContext, outcome: InitOutcome) -> InitContext:
    match outcome:
        case Replaced(instance=replacement):
            return ctx.with_instance(replacement)
        case _:
            return ctx


async def _settle(pending: Awaitable[Any]) -> InitOutcome:
    outcome = classify(await pending)
    while isinstance(outcome, Deferred):
        outcome = classify(await outcome.pending)
    return outcome


async def _resume(
    remaining: Sequence[Initializer], ctx: InitContext, pending: Awaitable[Any]
) -> Any:
    ctx = _apply(ctx, await _settle(pending))
    for initializer in remaining:
        outcome = classify(initializer(ctx))
        if isinstance(outcome, Deferred):
            outcome = await _settle(outcome.pending)
        ctx = _apply(ctx, outcome)
    return ctx.instance


def run_initializers(initializers: Sequence[Initializer], ctx: InitContext) -> Any:
    """
    Run initializers in order against ctx.instance.

    Stays synchronous and returns the instance until an initializer returns an
    awaitable. From that point the rest of the chain runs inside a coroutine,
    which is returned instead and resolves to the final instance.
    """
    for position, initializer in enumerate(initializers):
        match classify(initializer(ctx)):
            case Deferred(pending=pending):
                remaining = initializers[position + 1 :]
                logging.debug(
                    f"initializer {position} suspended the chain; "
                    f"{len(remaining)} initializer(s) deferred"
                )
                return _resume(remaining, ctx, pending)
            case Replaced(instance=replacement):
                ctx = ctx.with_instance(replacement)
    return ctx.instance


def construct(
    factory: Any,
    cls: type[Instance],
    instance_state: Mapping[str, Any] | None,
    args: tuple[Any, ...],
) -> Any:
    state: FactoryState = factory.fixed
    obj = new_instance(cls, state, instance_state)
    if not state.init:
        return obj
    return run_initializers(state.init, InitContext(args=args, instance=obj, factory=factory))
