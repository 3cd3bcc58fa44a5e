"""Store and context configuration for tagix."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tagix.context import Context
    from tagix.store.middleware import Middleware


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Store configuration.

    Parameters
    ----------
    name : str
        Human-readable store name, used in context ids and log records.
    strict : bool
        Reject commits whose tag is not declared by the store's
        tagged enum (raises ``StateTransitionError``).
    strict_actions : bool
        Raise ``ActionNotFoundError`` when dispatching an unregistered
        name instead of the default silent no-op.
    max_error_history : int
        Number of handler failures retained in ``Store.error_history``.
    middlewares : sequence of Middleware
        Dispatch middleware chain; the first entry is the outermost.
    """

    name: str = "tagix"
    strict: bool = False
    strict_actions: bool = False
    max_error_history: int = 50
    middlewares: Sequence[Middleware] = ()

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from ``TAGIX_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        name = env.get("TAGIX_STORE_NAME")
        if name is not None:
            config_kwargs["name"] = name

        if "strict" not in overrides:
            config_kwargs["strict"] = _env_bool(env.get("TAGIX_STRICT"), False)

        if "strict_actions" not in overrides:
            config_kwargs["strict_actions"] = _env_bool(env.get("TAGIX_STRICT_ACTIONS"), False)

        history_env = env.get("TAGIX_MAX_ERROR_HISTORY")
        if history_env is not None and "max_error_history" not in overrides:
            config_kwargs["max_error_history"] = int(history_env)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class ContextConfig:
    """Context configuration.

    Parameters
    ----------
    parent : Context or None
        When given, the new context is owned by *parent* as a child: it
        receives the parent's notifications and is disposed with it.
    on_error : callable or None
        Receives exceptions raised by subscriber callbacks during
        notification. When unset, the nearest ancestor's handler is used;
        without one, failures are logged at DEBUG.
    name : str or None
        Label for the context id; defaults to the store name.
    """

    parent: Context[Any] | None = None
    on_error: Callable[[BaseException], None] | None = None
    name: str | None = None
