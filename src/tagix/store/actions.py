"""Action descriptors and handler results.

An :class:`Action` pairs a unique name with a handler::

    handler(state, payload, services) -> next_state

Handlers that only need ``(state, payload)`` or ``(state,)`` are adapted
at construction time. A handler may suspend in one of two explicit ways:

* the action is declared async (``is_async=True``, set automatically for
  ``async def`` handlers) and the handler returns an awaitable;
* a synchronous handler returns :class:`Deferred` wrapping an awaitable.

Everything else is an :class:`Immediate` result. :func:`resolve_result`
performs that classification before the store commits anything.
"""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from tagix.exceptions import InvalidActionError
from tagix.tagged_enum import tag_of

S = TypeVar("S")
P = TypeVar("P")
E = TypeVar("E")

Handler = Callable[[Any, Any, Any], Any]


@dataclasses.dataclass(frozen=True, slots=True)
class Immediate(Generic[S]):
    """Handler result available right away."""

    value: S


@dataclasses.dataclass(frozen=True, slots=True)
class Deferred(Generic[S]):
    """Handler result that must be awaited before commit.

    ``pending`` is an optional interim state committed at dispatch time,
    before the awaitable settles (e.g. a ``Loading`` variant).
    """

    awaitable: Awaitable[S]
    pending: S | None = None


HandlerResult = Immediate[Any] | Deferred[Any]


@dataclasses.dataclass(frozen=True, slots=True)
class Recovered(Generic[S]):
    """Deferred outcome whose effect failed but was folded into *value*.

    The store commits ``value`` and records ``error`` in its error history.
    """

    value: S
    error: Exception


def _adapt_handler(fn: Callable[..., Any]) -> Handler:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return fn

    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return fn
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1

    if positional >= 3:
        return fn
    if positional == 2:

        def with_payload(state: Any, payload: Any, _services: Any) -> Any:
            return fn(state, payload)

        return with_payload
    if positional == 1:

        def state_only(state: Any, _payload: Any, _services: Any) -> Any:
            return fn(state)

        return state_only

    def no_args(_state: Any, _payload: Any, _services: Any) -> Any:
        return fn()

    return no_args


@dataclasses.dataclass(frozen=True, slots=True)
class Action(Generic[P]):
    """A named state transition.

    Parameters
    ----------
    name : str
        Registry key. Re-registering a name replaces the previous handler.
    handler : callable
        ``(state, payload, services) -> state | Immediate | Deferred`` or,
        for async actions, an awaitable of the next state.
    is_async : bool
        Whether the handler's result is awaited before commit.
    payload : object
        Default payload used when ``dispatch`` is called without one.
    """

    name: str
    handler: Handler
    is_async: bool = False
    payload: P | None = None

    def __post_init__(self) -> None:
        if not callable(self.handler):
            raise InvalidActionError(f"Handler for action {self.name!r} is not callable")
        if not self.is_async and inspect.iscoroutinefunction(self.handler):
            object.__setattr__(self, "is_async", True)
        object.__setattr__(self, "handler", _adapt_handler(self.handler))

    def renamed(self, name: str) -> Action[P]:
        return dataclasses.replace(self, name=name)


def resolve_result(action: Action[Any], result: Any) -> HandlerResult:
    """Classify a raw handler result as :class:`Immediate` or :class:`Deferred`.

    Raises
    ------
    InvalidActionError
        If an async action returned a non-awaitable, or a synchronous one
        returned a bare awaitable.
    """
    if isinstance(result, (Immediate, Deferred)):
        return result
    if action.is_async:
        if not inspect.isawaitable(result):
            raise InvalidActionError(f"Async action {action.name!r} returned a non-awaitable result")
        return Deferred(result)
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise InvalidActionError(
            f"Action {action.name!r} returned an awaitable; declare it async or wrap the result in Deferred"
        )
    return Immediate(result)


class ActionBuilder(Generic[P]):
    """Fluent builder returned by :func:`create_action` without a handler."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._payload: P | None = None

    def with_payload(self, payload: P) -> ActionBuilder[P]:
        self._payload = payload
        return self

    def with_state(self, handler: Callable[..., Any]) -> Action[P]:
        return Action(self._name, handler, payload=self._payload)

    with_handler = with_state


def create_action(name: str, handler: Callable[..., Any] | None = None) -> Any:
    """Create an :class:`Action`, or an :class:`ActionBuilder` if *handler* is omitted.

    Usage::

        increment = create_action("Increment", lambda s, p: s.model_copy(update={"value": s.value + p}))
        reset = create_action("Reset").with_payload(0).with_state(lambda s, p: Counter.Idle(value=p))
    """
    if handler is None:
        return ActionBuilder(name)
    return Action(name, handler)


class AsyncActionBuilder(Generic[P, S, E]):
    """Effect-style async action builder.

    ``state`` computes the interim state committed at dispatch time,
    ``effect`` performs the side effect, and ``on_success`` / ``on_error``
    fold its outcome into the final state. Effect failures are folded by
    ``on_error`` and never propagate to the dispatcher; the store still
    records them in its error history.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._payload: P | None = None
        self._state_fn: Callable[[S], S] = lambda state: state
        self._effect_fn: Callable[..., Awaitable[E]] | None = None
        self._on_success: Callable[[S, E], S] = lambda state, _result: state
        self._on_error: Callable[[S, Exception], S] = lambda state, _error: state

    def with_payload(self, payload: P) -> AsyncActionBuilder[P, S, E]:
        self._payload = payload
        return self

    def state(self, fn: Callable[[S], S]) -> AsyncActionBuilder[P, S, E]:
        self._state_fn = fn
        return self

    def effect(self, fn: Callable[..., Awaitable[E]]) -> AsyncActionBuilder[P, S, E]:
        """Set the effect: ``fn(payload)`` or ``fn(payload, services)``."""
        self._effect_fn = fn
        return self

    def on_success(self, fn: Callable[[S, E], S]) -> AsyncActionBuilder[P, S, E]:
        self._on_success = fn
        return self

    def on_error(self, fn: Callable[[S, Exception], S]) -> Action[P]:
        self._on_error = fn
        return self.build()

    def build(self) -> Action[P]:
        state_fn = self._state_fn
        effect_fn = self._effect_fn
        on_success = self._on_success
        on_error = self._on_error
        if effect_fn is None:
            raise InvalidActionError(f"Async action {self._name!r} has no effect")
        wants_services = _positional_count(effect_fn) >= 2

        def handler(state: S, payload: P, services: Any) -> Deferred[Any]:
            pending = state_fn(state)

            async def settle() -> S | Recovered[S]:
                try:
                    if wants_services:
                        result = await effect_fn(payload, services)
                    else:
                        result = await effect_fn(payload)
                except Exception as exc:
                    return Recovered(on_error(pending, exc), exc)
                return on_success(pending, result)

            return Deferred(settle(), pending=pending)

        return Action(self._name, handler, is_async=True, payload=self._payload)


def _positional_count(fn: Callable[..., Any]) -> int:
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1
    return sum(
        1
        for p in parameters
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )


def create_async_action(name: str) -> AsyncActionBuilder[Any, Any, Any]:
    return AsyncActionBuilder(name)


def create_action_group(namespace: str, actions: Mapping[str, Action[Any]]) -> dict[str, Action[Any]]:
    """Copy *actions* with names prefixed by ``"<namespace>/"``.

    The originals are not modified.
    """
    prefix = namespace if namespace.endswith("/") else f"{namespace}/"
    return {key: action.renamed(f"{prefix}{action.name}") for key, action in actions.items()}


def transitions(cases: Mapping[str, Callable[[Any], Any]]) -> Handler:
    """Build a handler that switches on the current tag.

    Tags without a case leave the state unchanged.
    """

    def handler(state: Any, _payload: Any, _services: Any) -> Any:
        fn = cases.get(tag_of(state) or "")
        return fn(state) if fn is not None else state

    return handler
