from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

import pytest

from metafactory.errors import InvalidInstanceStateError
from metafactory.internal import construction
from metafactory.internal.composition import merge_states
from metafactory.model.state import InitContext, StateFragment
from unit.helpers.factory_helper import Plain, recording_init


async def _later(value: Any = None) -> Any:
    await asyncio.sleep(0)
    return value


def _ctx(instance: Any, *args: Any) -> InitContext:
    return InitContext(args=args, instance=instance, factory=None)  # type: ignore[arg-type]


# ==============================================================================
# CASE MATRIX
# ==============================================================================

_CLASSIFY_CASES: list[dict[str, Any]] = [
    {"desc": "none is unchanged", "result": None, "expected": construction.Unchanged},
    {"desc": "object replaces", "result": Plain(a=1), "expected": construction.Replaced},
    {"desc": "zero is unchanged", "result": 0, "expected": construction.Unchanged},
    {"desc": "false is unchanged", "result": False, "expected": construction.Unchanged},
    {"desc": "empty string is unchanged", "result": "", "expected": construction.Unchanged},
    {"desc": "empty dict is unchanged", "result": {}, "expected": construction.Unchanged},
]

_BAD_INSTANCE_STATE_CASES: list[dict[str, Any]] = [
    {"desc": "empty string", "value": ""},
    {"desc": "list", "value": [("a", 1)]},
    {"desc": "int", "value": 3},
]


# ==============================================================================
# TESTS: instance class and allocation
# ==============================================================================


def test_instance_class_installs_methods_on_the_class() -> None:
    def greet(self: Any) -> str:
        return f"hi {self.name}"

    marker = object()
    cls = construction.instance_class({"greet": greet}, marker)
    obj = object.__new__(cls)
    obj.name = "x"

    assert issubclass(cls, construction.Instance)
    assert cls.__factory__ is marker
    assert obj.greet() == "hi x"
    assert "greet" not in vars(obj)


def test_new_instance_layers_props_refs_and_instance_state() -> None:
    shared = {"pool": []}
    state = merge_states(
        [StateFragment(props={"a": 1, "nested": {"k": [1]}, "d": 4}, refs={"shared": shared})]
    )
    cls = construction.instance_class(state.methods, None)

    first = construction.new_instance(cls, state, {"d": 5})
    second = construction.new_instance(cls, state, None)

    assert vars(first) == {"a": 1, "nested": {"k": [1]}, "d": 5, "shared": shared}
    first.nested["k"].append(2)
    assert second.nested == {"k": [1]}
    assert state.props["nested"] == {"k": [1]}
    assert first.shared is second.shared is shared


def test_new_instance_state_is_assigned_shallowly() -> None:
    state = merge_states([StateFragment(props={"cfg": {"a": 1}})])
    cls = construction.instance_class({}, None)
    override = {"b": 2}
    obj = construction.new_instance(cls, state, {"cfg": override})
    assert obj.cfg is override


@pytest.mark.parametrize(
    "case", [pytest.param(c, id=c["desc"]) for c in _BAD_INSTANCE_STATE_CASES]
)
def test_new_instance_rejects_non_dict_instance_state(case: dict[str, Any]) -> None:
    cls = construction.instance_class({}, None)
    with pytest.raises(InvalidInstanceStateError):
        construction.new_instance(cls, merge_states([]), case["value"])


def test_instance_repr_lists_fields() -> None:
    cls = construction.instance_class({}, None)
    obj = construction.new_instance(cls, merge_states([StateFragment(props={"n": 1})]), None)
    assert repr(obj) == "Instance(n=1)"


# ==============================================================================
# TESTS: outcomes
# ==============================================================================


@pytest.mark.parametrize("case", [pytest.param(c, id=c["desc"]) for c in _CLASSIFY_CASES])
def test_classify(case: dict[str, Any]) -> None:
    assert isinstance(construction.classify(case["result"]), case["expected"])


def test_classify_awaitable_is_deferred() -> None:
    pending = _later()
    try:
        outcome = construction.classify(pending)
        assert isinstance(outcome, construction.Deferred)
        assert outcome.pending is pending
    finally:
        pending.close()


# ==============================================================================
# TESTS: synchronous chain
# ==============================================================================


def test_run_initializers_in_order_and_sees_args() -> None:
    log: list[str] = []

    def use_args(ctx: InitContext) -> None:
        log.append(f"args={ctx.args}")
        ctx.instance.total = sum(ctx.args)

    obj = Plain()
    out = construction.run_initializers(
        [recording_init(log, "one"), use_args, recording_init(log, "two")],
        _ctx(obj, 1, 2, 3),
    )

    assert out is obj
    assert log == ["one", "args=(1, 2, 3)", "two"]
    assert obj.total == 6


def test_run_initializers_replacement_flows_to_later_initializers() -> None:
    replacement = Plain(kind="replacement")
    seen: list[Any] = []

    def swap(ctx: InitContext) -> Any:
        return replacement

    def observe(ctx: InitContext) -> None:
        seen.append(ctx.instance)

    out = construction.run_initializers([swap, observe], _ctx(Plain()))
    assert out is replacement
    assert seen == [replacement]


@pytest.mark.parametrize("falsy", [0, False, "", {}, []])
def test_run_initializers_falsy_result_keeps_the_instance(falsy: Any) -> None:
    obj = Plain(n=1)
    seen: list[Any] = []

    def observe(ctx: InitContext) -> None:
        seen.append(ctx.instance)

    out = construction.run_initializers([lambda ctx: falsy, observe], _ctx(obj))
    assert out is obj
    assert seen == [obj]


def test_run_initializers_sync_error_propagates_immediately() -> None:
    log: list[str] = []

    def boom(ctx: InitContext) -> None:
        raise ValueError("init boom")

    with pytest.raises(ValueError, match="init boom"):
        construction.run_initializers(
            [boom, recording_init(log, "never")], _ctx(Plain())
        )
    assert log == []


# ==============================================================================
# TESTS: deferred chain
# ==============================================================================


def test_run_initializers_switches_to_coroutine_on_first_awaitable(
    caplog: pytest.LogCaptureFixture,
) -> None:
    log: list[str] = []

    def suspend(ctx: InitContext) -> Any:
        log.append("suspend")
        return _later()

    obj = Plain()
    with caplog.at_level(logging.DEBUG):
        result = construction.run_initializers(
            [recording_init(log, "sync"), suspend, recording_init(log, "after", done=True)],
            _ctx(obj),
        )

    assert inspect.iscoroutine(result)
    assert log == ["sync", "suspend"]
    assert "suspended the chain" in caplog.text

    final = asyncio.run(result)
    assert final is obj
    assert log == ["sync", "suspend", "after"]
    assert obj.done is True


def test_deferred_chain_replacements_and_nested_awaitables() -> None:
    replacement = Plain(kind="replacement")
    late = Plain(kind="late")
    order: list[str] = []

    def first(ctx: InitContext) -> Any:
        order.append("first")
        return _later(replacement)

    def second(ctx: InitContext) -> Any:
        order.append(f"second:{ctx.instance.kind}")
        return _later(_later(None))

    async def third(ctx: InitContext) -> Any:
        order.append(f"third:{ctx.instance.kind}")
        return late

    def fourth(ctx: InitContext) -> None:
        order.append(f"fourth:{ctx.instance.kind}")

    result = construction.run_initializers([first, second, third, fourth], _ctx(Plain()))
    assert asyncio.run(result) is late
    assert order == ["first", "second:replacement", "third:replacement", "fourth:late"]


@pytest.mark.parametrize("falsy", [0, False, "", {}])
def test_deferred_chain_falsy_resolution_keeps_the_instance(falsy: Any) -> None:
    async def settles_falsy(ctx: InitContext) -> Any:
        await asyncio.sleep(0)
        return falsy

    def after(ctx: InitContext) -> Any:
        ctx.instance.after = True
        return _later(falsy)

    obj = Plain(n=1)
    result = construction.run_initializers([settles_falsy, after], _ctx(obj))

    final = asyncio.run(result)
    assert final is obj
    assert (final.n, final.after) == (1, True)


def test_deferred_chain_error_rejects_the_result() -> None:
    log: list[str] = []

    async def fails(ctx: InitContext) -> None:
        raise RuntimeError("async boom")

    result = construction.run_initializers(
        [lambda ctx: _later(), fails, recording_init(log, "never")], _ctx(Plain())
    )
    with pytest.raises(RuntimeError, match="async boom"):
        asyncio.run(result)
    assert log == []


def test_construct_without_initializers_is_synchronous() -> None:
    class _Holder:
        fixed = merge_states([StateFragment(props={"n": 1})])

    cls = construction.instance_class({}, None)
    obj = construction.construct(_Holder(), cls, None, ())
    assert isinstance(obj, construction.Instance)
    assert obj.n == 1
