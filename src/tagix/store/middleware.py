"""Dispatch middleware.

A middleware wraps the store's executor::

    middleware(api)(next)(action, payload, services) -> result

``api`` gives read access to the store plus re-entrant ``dispatch`` and
``subscribe``. Calling ``next`` runs the rest of the chain (and
eventually the handler and commit); not calling it blocks the action.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable, Collection
from typing import Any

from tagix._redact import DEFAULT_REDACT_KEYS, redact_for_log
from tagix.store.actions import Action
from tagix.tagged_enum import tag_of

_logger = logging.getLogger(__name__)

Executor = Callable[[Action[Any], Any, Any], Any]


@dataclasses.dataclass(frozen=True, slots=True)
class MiddlewareAPI:
    """Store surface handed to middleware factories."""

    get_state: Callable[[], Any]
    dispatch: Callable[..., Any]
    subscribe: Callable[[Callable[[Any], None]], Callable[[], None]]


Middleware = Callable[[MiddlewareAPI], Callable[[Executor], Executor]]


def compose(middlewares: Collection[Middleware], api: MiddlewareAPI, executor: Executor) -> Executor:
    """Wrap *executor* so the first middleware runs outermost."""
    chain = executor
    for middleware in reversed(list(middlewares)):
        chain = middleware(api)(chain)
    return chain


def create_logging_middleware(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.DEBUG,
    predicate: Callable[[Action[Any]], bool] | None = None,
    duration: bool = True,
    redact_keys: Collection[str] = DEFAULT_REDACT_KEYS,
) -> Middleware:
    """Log every dispatched action with its (redacted) payload and tag change.

    Parameters
    ----------
    logger : logging.Logger or None
        Destination logger; defaults to this module's logger.
    level : int
        Log level for all records.
    predicate : callable or None
        Only actions for which it returns ``True`` are logged.
    duration : bool
        Also log how long the action took (deferred actions are timed until
        their task finishes).
    redact_keys : collection of str
        Payload keys replaced with ``<redacted>``.
    """
    log = logger or _logger

    def middleware(api: MiddlewareAPI) -> Callable[[Executor], Executor]:
        def wrap(next_: Executor) -> Executor:
            def execute(action: Action[Any], payload: Any, services: Any) -> Any:
                if (predicate is not None and not predicate(action)) or not log.isEnabledFor(level):
                    return next_(action, payload, services)

                before = tag_of(api.get_state())
                log.log(
                    level,
                    "action %s state=%s payload=%s",
                    action.name,
                    before,
                    redact_for_log(payload, redact_keys=redact_keys),
                )
                started = time.perf_counter()
                result = next_(action, payload, services)

                if not duration:
                    return result
                if isinstance(result, asyncio.Future):

                    def on_done(task: asyncio.Future[Any]) -> None:
                        outcome = "cancelled" if task.cancelled() else ("failed" if task.exception() else "done")
                        log.log(
                            level,
                            "action %s %s -> %s (in %.2f ms)",
                            action.name,
                            outcome,
                            tag_of(api.get_state()),
                            (time.perf_counter() - started) * 1000,
                        )

                    result.add_done_callback(on_done)
                else:
                    log.log(
                        level,
                        "action %s %s -> %s (in %.2f ms)",
                        action.name,
                        before,
                        tag_of(api.get_state()),
                        (time.perf_counter() - started) * 1000,
                    )
                return result

            return execute

        return wrap

    return middleware
