"""Finite-state store over tagged values.

The store owns exactly one current state, a name -> action registry and an
ordered set of subscribers. State only changes through :meth:`Store.dispatch`:

* an unregistered name is a silent no-op (unless ``strict_actions``);
* an :class:`~tagix.store.actions.Immediate` result is committed and every
  subscriber notified, in registration order, before ``dispatch`` returns;
* a :class:`~tagix.store.actions.Deferred` result is awaited in a task
  returned to the caller; the commit happens when it settles, and deferred
  commits land in dispatch order;
* a handler exception propagates unmodified, nothing is committed and
  nobody is notified.

Dispatch is not re-entrant. A dispatch issued from inside a handler or a
subscriber is queued and runs after the in-flight commit, still within the
outer ``dispatch`` call. Each queued action runs in isolation: its failure
is recorded and logged, and the remaining queue keeps draining.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from tagix.config import StoreConfig
from tagix.exceptions import ActionNotFoundError, InvalidActionError, StateTransitionError
from tagix.selectors import select
from tagix.services import EMPTY_SERVICES, ServiceAccessor
from tagix.store.actions import Action, Immediate, Recovered, resolve_result
from tagix.store.middleware import MiddlewareAPI, compose
from tagix.tagged_enum import TaggedEnum, tag_of

_logger = logging.getLogger(__name__)

S = TypeVar("S")

Subscriber = Callable[[S], None]


@dataclasses.dataclass(slots=True)
class _Queued:
    action: Action[Any]
    payload: Any
    services: ServiceAccessor
    waiter: asyncio.Future[Any] | None


def _new_waiter() -> asyncio.Future[Any] | None:
    try:
        waiter = asyncio.get_running_loop().create_future()
    except RuntimeError:
        return None
    # A failed queued action is already recorded and logged; awaiting the
    # waiter still raises.
    waiter.add_done_callback(_retrieve)
    return waiter


def _relay(source: asyncio.Future[Any], target: asyncio.Future[Any]) -> None:
    def done(fut: asyncio.Future[Any]) -> None:
        if target.done():
            if not fut.cancelled():
                fut.exception()
            return
        if fut.cancelled():
            target.cancel()
        elif fut.exception() is not None:
            target.set_exception(fut.exception())  # type: ignore[arg-type]
        else:
            target.set_result(fut.result())

    source.add_done_callback(done)


def _retrieve(fut: asyncio.Future[Any]) -> None:
    # Nobody awaits a queued deferred dispatch issued without a loop waiter;
    # its failure is already in the error history.
    if not fut.cancelled():
        fut.exception()


class Store(Generic[S]):
    """In-memory store for one tagged state value.

    Usage::

        store = create_store(Counter.Idle(value=0), Counter)
        store.register("Increment", lambda s, p: s.model_copy(update={"value": s.value + p["amount"]}))
        store.dispatch("Increment", {"amount": 5})
        store.state.value  # 5
    """

    def __init__(
        self,
        initial_state: S,
        enum: TaggedEnum | None = None,
        config: StoreConfig | None = None,
    ) -> None:
        self._state = initial_state
        self._enum = enum
        self._config = config or StoreConfig()
        self._actions: dict[str, Action[Any]] = {}
        self._subscribers: dict[int, Subscriber[S]] = {}
        self._tokens = itertools.count()
        self._errors: deque[BaseException] = deque(maxlen=max(self._config.max_error_history, 0))
        self._dispatching = False
        self._queue: deque[_Queued] = deque()
        self._last_deferred: asyncio.Task[Any] | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()
        api = MiddlewareAPI(get_state=lambda: self._state, dispatch=self.dispatch, subscribe=self.subscribe)
        self._pipeline = compose(self._config.middlewares, api, self._execute)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> S:
        return self._state

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def enum(self) -> TaggedEnum | None:
        return self._enum

    @property
    def registered_actions(self) -> tuple[str, ...]:
        return tuple(self._actions)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def is_in_state(self, tag: str) -> bool:
        return tag_of(self._state) == tag

    def get_state(self, tag: str) -> S | None:
        """Current state if it carries *tag*, else ``None``."""
        return self._state if tag_of(self._state) == tag else None

    def select(self, key: str) -> Any:
        return select(self._state, key)

    # ------------------------------------------------------------------
    # Error history
    # ------------------------------------------------------------------

    @property
    def error_history(self) -> tuple[BaseException, ...]:
        return tuple(self._errors)

    @property
    def last_error(self) -> BaseException | None:
        return self._errors[-1] if self._errors else None

    def clear_error_history(self) -> None:
        self._errors.clear()

    def _record_error(self, error: BaseException) -> None:
        self._errors.append(error)

    # ------------------------------------------------------------------
    # Registration and subscription
    # ------------------------------------------------------------------

    def register(self, name: str, action: Action[Any] | Callable[..., Any]) -> None:
        """Register *action* under *name*; the last registration wins."""
        if isinstance(action, Action):
            registered = action if action.name == name else action.renamed(name)
        elif callable(action):
            registered = Action(name, action)
        else:
            raise InvalidActionError(f"Cannot register {action!r} as action {name!r}")

        if name in self._actions:
            _logger.debug("Store %s replacing handler for action %s", self.name, name)
        else:
            _logger.debug("Store %s registered action %s", self.name, name)
        self._actions[name] = registered

    def register_action(self, action: Action[Any]) -> None:
        self.register(action.name, action)

    def subscribe(self, callback: Subscriber[S]) -> Callable[[], None]:
        """Add *callback*; the returned function removes exactly this registration."""
        token = next(self._tokens)
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        action: str | Action[Any],
        payload: Any = None,
        *,
        services: ServiceAccessor | None = None,
    ) -> asyncio.Future[S] | None:
        """Run the handler registered for *action*.

        Returns ``None`` once an immediate result is committed (or for a
        no-op), or an ``asyncio.Task`` resolving to the committed state for a
        deferred result. Deferred dispatch requires a running event loop.

        A dispatch issued while another one is running is queued. Under a
        running event loop it returns a future resolving to the state
        committed once the queued action has run (or failing with its
        error); without a loop it returns ``None``. A failing queued action
        is recorded and logged and does not affect the outer dispatch.
        """
        name = action if isinstance(action, str) else action.name
        registered = self._actions.get(name)
        if registered is None:
            if self._config.strict_actions:
                raise ActionNotFoundError(name)
            _logger.debug("Store %s ignored unregistered action %s", self.name, name)
            return None

        if payload is None:
            payload = registered.payload
        accessor = services if services is not None else EMPTY_SERVICES

        if self._dispatching:
            waiter = _new_waiter()
            self._queue.append(_Queued(registered, payload, accessor, waiter))
            return waiter

        self._dispatching = True
        try:
            result = self._pipeline(registered, payload, accessor)
            self._drain()
        finally:
            self._dispatching = False
            self._drop_queue()
        return result  # type: ignore[no-any-return]

    def _drain(self) -> None:
        while self._queue:
            item = self._queue.popleft()
            try:
                result = self._pipeline(item.action, item.payload, item.services)
            except Exception as exc:
                _logger.warning(
                    "Queued action %s failed on store %s",
                    item.action.name,
                    self.name,
                    exc_info=True,
                )
                if item.waiter is not None and not item.waiter.done():
                    item.waiter.set_exception(exc)
                continue

            if isinstance(result, asyncio.Future):
                if item.waiter is not None:
                    _relay(result, item.waiter)
                else:
                    result.add_done_callback(_retrieve)
            elif item.waiter is not None and not item.waiter.done():
                item.waiter.set_result(self._state)

    def _drop_queue(self) -> None:
        # Reached when the outer action failed: queued work never runs.
        while self._queue:
            item = self._queue.popleft()
            if item.waiter is not None:
                item.waiter.cancel()
            _logger.debug("Store %s dropped queued action %s", self.name, item.action.name)

    def _execute(self, action: Action[Any], payload: Any, services: ServiceAccessor) -> asyncio.Task[S] | None:
        try:
            outcome = resolve_result(action, action.handler(self._state, payload, services))
            if isinstance(outcome, Immediate):
                self._commit(action, outcome.value)
                return None
            if outcome.pending is not None:
                self._commit(action, outcome.pending)
        except Exception as exc:
            self._record_error(exc)
            raise
        return self._schedule(action, outcome.awaitable)

    def _schedule(self, action: Action[Any], awaitable: Awaitable[S]) -> asyncio.Task[S]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise InvalidActionError(f"Deferred action {action.name!r} needs a running event loop") from exc

        task = loop.create_task(self._settle(action, awaitable, self._last_deferred))
        self._last_deferred = task
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _settle(
        self,
        action: Action[Any],
        awaitable: Awaitable[S],
        previous: asyncio.Task[Any] | None,
    ) -> S:
        try:
            value = await awaitable
        except Exception as exc:
            self._record_error(exc)
            raise

        if isinstance(value, Recovered):
            _logger.debug("Store %s action %s recovered from %r", self.name, action.name, value.error)
            self._record_error(value.error)
            value = value.value

        # Commit after any earlier deferred dispatch so commits keep dispatch order.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        self._dispatching = True
        try:
            try:
                self._commit(action, value)
            except Exception as exc:
                self._record_error(exc)
                raise
            self._drain()
        finally:
            self._dispatching = False
            self._drop_queue()
        return value

    def _commit(self, action: Action[Any], new_state: S) -> None:
        if self._config.strict and self._enum is not None:
            tag = tag_of(new_state)
            if tag not in self._enum:
                raise StateTransitionError(expected=list(self._enum.tags), actual=str(tag), action=action.name)

        previous_tag = tag_of(self._state)
        self._state = new_state
        _logger.debug(
            "Store %s committed %s: %s -> %s",
            self.name,
            action.name,
            previous_tag,
            tag_of(new_state),
        )
        for callback in list(self._subscribers.values()):
            try:
                callback(new_state)
            except Exception:
                _logger.warning("Subscriber of store %s failed", self.name, exc_info=True)


def create_store(
    initial_state: S,
    enum: TaggedEnum | None = None,
    config: StoreConfig | None = None,
) -> Store[S]:
    """Create a :class:`Store` seeded with *initial_state*."""
    return Store(initial_state, enum, config)
