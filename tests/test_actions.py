from __future__ import annotations

import asyncio

import pytest

from tagix.exceptions import InvalidActionError
from tagix.store.actions import (
    Action,
    Deferred,
    Immediate,
    Recovered,
    create_action,
    create_action_group,
    create_async_action,
    resolve_result,
    transitions,
)
from tagix.tagged_enum import tagged_enum

Door = tagged_enum({"Open": {}, "Closed": {}, "Locked": {"code": ""}})


def test_action_rejects_non_callable_handler() -> None:
    with pytest.raises(InvalidActionError):
        Action("Broken", "not callable")  # type: ignore[arg-type]


def test_short_handlers_are_adapted_to_full_signature() -> None:
    with_payload = Action("Lock", lambda state, payload: Door.Locked(code=payload))
    state_only = Action("Close", lambda state: Door.Closed())
    full = Action("Open", lambda state, payload, services: Door.Open())

    assert with_payload.handler(Door.Closed(), "1234", None) == Door.Locked(code="1234")
    assert state_only.handler(Door.Open(), None, None) == Door.Closed()
    assert full.handler(Door.Closed(), None, None) == Door.Open()


def test_coroutine_handler_marks_action_async() -> None:
    async def open_slowly(state: object) -> object:
        return Door.Open()

    assert Action("Open", open_slowly).is_async
    assert not Action("Close", lambda s: Door.Closed()).is_async


def test_resolve_result_classifies_plain_values_as_immediate() -> None:
    action = Action("Close", lambda s: Door.Closed())

    assert resolve_result(action, Door.Closed()) == Immediate(Door.Closed())
    passthrough = Immediate(Door.Open())
    assert resolve_result(action, passthrough) is passthrough


def test_resolve_result_wraps_async_results_as_deferred() -> None:
    async def settle() -> object:
        return Door.Open()

    action = Action("Open", settle, is_async=True)
    awaitable = settle()
    try:
        result = resolve_result(action, awaitable)
        assert isinstance(result, Deferred)
        assert result.awaitable is awaitable
        assert result.pending is None
    finally:
        awaitable.close()


def test_resolve_result_rejects_non_awaitable_from_async_action() -> None:
    action = Action("Open", lambda s: Door.Open(), is_async=True)

    with pytest.raises(InvalidActionError, match="non-awaitable"):
        resolve_result(action, Door.Open())


def test_resolve_result_rejects_bare_awaitable_from_sync_action() -> None:
    async def settle() -> object:
        return Door.Open()

    action = Action("Open", lambda s: Door.Open())
    awaitable = settle()

    with pytest.raises(InvalidActionError, match="returned an awaitable"):
        resolve_result(action, awaitable)
    assert awaitable.cr_frame is None


def test_create_action_builder_sets_default_payload() -> None:
    reset = create_action("Lock").with_payload("0000").with_state(lambda s, p: Door.Locked(code=p))

    assert isinstance(reset, Action)
    assert reset.payload == "0000"
    assert reset.handler(Door.Closed(), reset.payload, None) == Door.Locked(code="0000")


def test_create_action_with_handler_returns_action() -> None:
    close = create_action("Close", lambda s: Door.Closed())

    assert close.name == "Close"
    assert close.payload is None


def test_action_group_prefixes_names_without_touching_originals() -> None:
    close = create_action("Close", lambda s: Door.Closed())
    opened = create_action("Open", lambda s: Door.Open())

    group = create_action_group("door", {"close": close, "open": opened})

    assert group["close"].name == "door/Close"
    assert group["open"].name == "door/Open"
    assert close.name == "Close"
    assert group["close"].handler is close.handler


def test_transitions_switch_on_current_tag() -> None:
    toggle = transitions({"Open": lambda s: Door.Closed(), "Closed": lambda s: Door.Open()})
    locked = Door.Locked(code="1")

    assert toggle(Door.Open(), None, None) == Door.Closed()
    assert toggle(Door.Closed(), None, None) == Door.Open()
    assert toggle(locked, None, None) is locked


def test_async_builder_requires_effect() -> None:
    with pytest.raises(InvalidActionError, match="no effect"):
        create_async_action("Unlock").state(lambda s: s).build()


@pytest.mark.asyncio
async def test_async_builder_folds_success_and_error() -> None:
    async def check(code: str) -> bool:
        await asyncio.sleep(0)
        if code != "1234":
            raise ValueError("wrong code")
        return True

    unlock = (
        create_async_action("Unlock")
        .state(lambda s: Door.Closed())
        .effect(check)
        .on_success(lambda s, ok: Door.Open())
        .on_error(lambda s, exc: Door.Locked(code=str(exc)))
    )

    assert unlock.is_async

    good = unlock.handler(Door.Locked(code="x"), "1234", None)
    assert good.pending == Door.Closed()
    assert await good.awaitable == Door.Open()

    bad = unlock.handler(Door.Locked(code="x"), "0000", None)
    recovered = await bad.awaitable
    assert isinstance(recovered, Recovered)
    assert recovered.value == Door.Locked(code="wrong code")
    assert isinstance(recovered.error, ValueError)
