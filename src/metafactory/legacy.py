from __future__ import annotations

import inspect
import logging
from typing import Any

from metafactory.errors import InvalidLegacyConstructorError
from metafactory.factory import Factory
from metafactory.internal.composition import merge_states
from metafactory.internal.values import clone, is_plain_mapping, is_sequence
from metafactory.model.options import LegacyConversionPolicy
from metafactory.model.state import FactoryState, InitContext, Initializer, StateFragment

# Names the interpreter maintains on every class; they describe the class
# object itself, not behaviour its instances should share.
_CLASS_BOOKKEEPING = frozenset(
    {
        "__abstractmethods__",
        "__annotate__",
        "__annotate_func__",
        "__annotations__",
        "__annotations_cache__",
        "__classcell__",
        "__dataclass_fields__",
        "__dataclass_params__",
        "__dict__",
        "__doc__",
        "__firstlineno__",
        "__init__",
        "__init_subclass__",
        "__module__",
        "__new__",
        "__orig_bases__",
        "__parameters__",
        "__qualname__",
        "__slots__",
        "__static_attributes__",
        "__subclasshook__",
        "__weakref__",
        "_abc_impl",
    }
)


def _classes_to_walk(cls: type, policy: LegacyConversionPolicy) -> tuple[type, ...]:
    if policy is LegacyConversionPolicy.OWN_ONLY:
        return (cls,)
    return tuple(k for k in reversed(cls.__mro__) if k is not object)


def _collect_members(
    cls: type, policy: LegacyConversionPolicy
) -> tuple[dict[str, Any], dict[str, Any]]:
    methods: dict[str, Any] = {}
    statics: dict[str, Any] = {}

    for klass in _classes_to_walk(cls, policy):
        for name, value in vars(klass).items():
            if name in _CLASS_BOOKKEEPING:
                continue
            # Slot descriptors only apply to instances of klass; converted
            # instances keep those fields in their own __dict__.
            if inspect.ismemberdescriptor(value) or inspect.isgetsetdescriptor(value):
                continue
            if isinstance(value, staticmethod):
                statics[name] = value.__func__
                methods.pop(name, None)
                continue
            if is_plain_mapping(value) or is_sequence(value):
                value = clone(value)
            methods[name] = value
            statics.pop(name, None)

    return methods, statics


def _constructor_initializer(cls: type) -> Initializer | None:
    constructor = cls.__init__
    if constructor is object.__init__:
        return None

    def run_constructor(ctx: InitContext) -> None:
        constructor(ctx.instance, *ctx.args)

    run_constructor.__qualname__ = f"{cls.__qualname__}.__init__"
    return run_constructor


def legacy_state(
    cls: type, policy: LegacyConversionPolicy = LegacyConversionPolicy.FLATTEN
) -> FactoryState:
    """
    Describe a classic class as a FactoryState.

    Methods: the class attributes (functions, properties, classmethods and
    data; plain dict/list/tuple data is deep-cloned). With FLATTEN the whole
    MRO contributes, base classes first; with OWN_ONLY only the class itself.

    Statics: the class's staticmethods, unwrapped.

    Init: a single initializer running cls.__init__ against the instance with
    the call's positional arguments, when the class defines a constructor.

    The instance is not an instance of cls, so code relying on zero-argument
    super() or isinstance(self, cls) does not carry over.
    """
    if not inspect.isclass(cls):
        raise InvalidLegacyConstructorError(
            f"legacy conversion needs a class, got {type(cls).__name__}"
        )

    policy = LegacyConversionPolicy(policy)
    methods, statics = _collect_members(cls, policy)
    state = merge_states(
        [
            StateFragment(
                methods=methods,
                statics=statics,
                init=_constructor_initializer(cls),
            )
        ]
    )
    logging.debug(
        f"converted legacy class {cls.__qualname__} ({policy.value}): "
        f"methods={sorted(methods)} statics={sorted(statics)}"
    )
    return state


def convert_legacy_constructor(
    cls: type, policy: LegacyConversionPolicy = LegacyConversionPolicy.FLATTEN
) -> Factory:
    return Factory(legacy_state(cls, policy))
