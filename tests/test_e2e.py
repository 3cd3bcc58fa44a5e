from __future__ import annotations

from typing import Any

from tagix import (
    create_context,
    create_service_tag,
    create_store,
    get_tag,
    on,
    patch,
    tagged_enum,
    when,
)
from tagix.services import ServiceTagRegistry

LoadState = tagged_enum({"Idle": {"value": 0}, "Loading": {}, "Ready": {"value": 0}})


class RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def info(self, message: str) -> None:
        self.calls.append(message)


def test_guards_over_store_state() -> None:
    store = create_store(LoadState.Ready(value=42), LoadState)
    state = store.state

    assert when("Ready")(state)
    assert on("Ready")(lambda s: s.value * 3)(state) == 126
    assert get_tag(state) == "Ready"


def test_increment_accumulates_payload_amounts() -> None:
    store = create_store(LoadState.Idle(value=0), LoadState)
    store.register("Increment", lambda s, payload: patch(s)(value=s.value + payload["amount"]))

    store.dispatch("Increment", {"amount": 5})
    assert store.state.value == 5

    store.dispatch("Increment", {"amount": 3})
    assert store.state.value == 8
    assert store.state.tag == "Idle"


def test_handler_side_effect_through_injected_logger() -> None:
    Logger = create_service_tag("Logger", RecordingLogger, registry=ServiceTagRegistry())
    logger = RecordingLogger()
    store = create_store(LoadState.Idle(), LoadState)

    def finish(state: Any, payload: Any, services: Any) -> Any:
        services.get_service(Logger).info("x")
        return LoadState.Ready(value=1)

    store.register("Finish", finish)
    context = create_context(store).provide_service(Logger, logger)

    context.dispatch("Finish")

    assert logger.calls == ["x"]
    assert store.state == LoadState.Ready(value=1)
    assert context.get_current() == LoadState.Ready(value=1)
