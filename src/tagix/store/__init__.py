"""Store layer.

The store is the single owner of the current state value. Every change
goes through a registered action and is announced to subscribers.
"""

from tagix.store.actions import (
    Action,
    ActionBuilder,
    AsyncActionBuilder,
    Deferred,
    HandlerResult,
    Immediate,
    Recovered,
    create_action,
    create_action_group,
    create_async_action,
    resolve_result,
    transitions,
)
from tagix.store.derived import DerivedStore, derive_store
from tagix.store.middleware import Middleware, MiddlewareAPI, compose, create_logging_middleware
from tagix.store.store import Store, create_store

__all__ = [
    "Action",
    "ActionBuilder",
    "AsyncActionBuilder",
    "Deferred",
    "DerivedStore",
    "HandlerResult",
    "Immediate",
    "Middleware",
    "MiddlewareAPI",
    "Recovered",
    "Store",
    "compose",
    "create_action",
    "create_action_group",
    "create_async_action",
    "create_logging_middleware",
    "create_store",
    "derive_store",
    "resolve_result",
    "transitions",
]
