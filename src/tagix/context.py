"""Hierarchical contexts over a store.

A :class:`Context` wraps a :class:`~tagix.store.store.Store` and adds:

* scoped subscriptions whose failures are routed to ``on_error`` instead of
  breaking the store's commit path;
* a tree of owned scopes: child contexts (notified, exactly once per
  commit, of everything their parent sees), forks, and derived scopes
  created by :meth:`Context.provide`;
* service injection: handlers dispatched through a context receive it as
  their service accessor, and lookups walk outward through ancestors.

Ownership runs strictly parent -> child. Parents hold their children,
forks and derived scopes; children only keep a weak reference back for
read-only lookups, so disposal is reachable from the root alone and the
tree never forms reference cycles.

Disposal is recursive and idempotent. Once disposed, a scope rejects
reads and writes with :class:`~tagix.exceptions.DisposedContextError`;
only ``get_service_optional`` and ``get`` degrade to ``None``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Mapping
from typing import Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel

from tagix.config import ContextConfig
from tagix.exceptions import DisposedContextError, MissingServiceError
from tagix.selectors import select as select_key
from tagix.services import ServiceRegistry, ServiceTag
from tagix.store.actions import Action
from tagix.store.store import Store
from tagix.tagged_enum import TAG_FIELD

_logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")
V = TypeVar("V")

_serials = itertools.count(1)


@dataclasses.dataclass(frozen=True, slots=True)
class ContextId:
    """Process-unique identity of a scope."""

    serial: int
    label: str

    def __str__(self) -> str:
        return f"{self.label}#{self.serial}"


def _mint_id(label: str) -> ContextId:
    return ContextId(next(_serials), label)


class AsyncSelection(NamedTuple):
    """Result of :meth:`Context.select_async`."""

    future: asyncio.Future[Any]
    unsubscribe: Callable[[], None]


_NOT_FOUND = object()


def _noop() -> None:
    return None


class Scope(ABC):
    """Behaviour shared by contexts and derived scopes."""

    def __init__(self, parent: Scope | None, scope_id: ContextId) -> None:
        self._parent_ref: weakref.ref[Scope] | None = weakref.ref(parent) if parent is not None else None
        self._id = scope_id
        self._derived: list[DerivedContext[Any]] = []
        self._disposed = False

    @property
    def id(self) -> ContextId:
        return self._id

    @property
    def parent(self) -> Scope | None:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def derived(self) -> tuple[DerivedContext[Any], ...]:
        return tuple(self._derived)

    def _check(self, operation: str) -> None:
        if self._disposed:
            raise DisposedContextError(operation)

    # ------------------------------------------------------------------
    # Layered lookups
    # ------------------------------------------------------------------

    def _local_value(self, key: Hashable) -> Any:
        return _NOT_FOUND

    def _local_service(self, tag: ServiceTag[Any]) -> Any:
        return _NOT_FOUND

    def _chain(self) -> list[Scope]:
        chain: list[Scope] = []
        scope: Scope | None = self
        while scope is not None:
            chain.append(scope)
            scope = scope.parent
        return chain

    def get(self, key: Hashable) -> Any:
        """Resolve a provided value, most specific layer first; ``None`` if absent."""
        if self._disposed:
            return None
        for scope in self._chain():
            value = scope._local_value(key)
            if value is not _NOT_FOUND:
                return value
        return None

    def get_service(self, tag: ServiceTag[T]) -> T:
        """Resolve *tag* here or in an ancestor.

        Raises
        ------
        DisposedContextError
            If this scope has been disposed.
        MissingServiceError
            If no scope in the chain provides *tag*.
        """
        self._check("get service")
        for scope in self._chain():
            implementation = scope._local_service(tag)
            if implementation is not _NOT_FOUND:
                return implementation  # type: ignore[no-any-return]
        raise MissingServiceError(tag.name)

    def get_service_optional(self, tag: ServiceTag[T]) -> T | None:
        if self._disposed:
            return None
        for scope in self._chain():
            implementation = scope._local_service(tag)
            if implementation is not _NOT_FOUND:
                return implementation  # type: ignore[no-any-return]
        return None

    # ------------------------------------------------------------------
    # Derived scopes
    # ------------------------------------------------------------------

    @abstractmethod
    def _current_value(self) -> Any:
        """Value that derived scopes are computed from."""

    def provide(self, key: Hashable, value: V | Callable[[Any], V]) -> DerivedContext[V]:
        """Layer a provided value under *key* on top of this scope.

        A callable is invoked once with the current value and its result is
        provided; it is not re-derived on later changes. Wrap a callable you
        want to provide as-is: ``provide(key, lambda _: fn)``.
        """
        self._check("provide")
        resolved = value(self._current_value()) if callable(value) else value
        derived: DerivedContext[V] = DerivedContext(self, key, resolved)
        self._derived.append(derived)
        _logger.debug("Scope %s provided %r as %s", self._id, key, derived.id)
        return derived

    def _release(self, scope: Scope) -> None:
        if scope in self._derived:
            self._derived.remove(scope)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def dispose(self) -> None:
        """Release this scope and everything it owns; idempotent."""

    def __enter__(self: Any) -> Any:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()


class DerivedContext(Scope, Generic[V]):
    """A scope overlaying one provided value on its parent.

    ``get_current`` returns the provided value; ``get(key)`` and service
    lookups fall through to the parent chain.
    """

    def __init__(self, parent: Scope, key: Hashable, value: V) -> None:
        super().__init__(parent, _mint_id(f"{parent.id.label}.{key}"))
        self._key = key
        self._value = value

    @property
    def key(self) -> Hashable:
        return self._key

    def _local_value(self, key: Hashable) -> Any:
        return self._value if key == self._key else _NOT_FOUND

    def _current_value(self) -> Any:
        return self._value

    def get_current(self) -> V:
        self._check("get current value")
        return self._value

    get_state = get_current

    def use(self, selector: Callable[[V], T] | None = None) -> V | T:
        self._check("use")
        if selector is None:
            return self._value
        return selector(self._value)

    def dispose(self) -> None:
        if self._disposed:
            return
        for derived in list(self._derived):
            derived.dispose()
        self._derived.clear()
        self._disposed = True
        parent = self.parent
        if parent is not None:
            parent._release(self)
        _logger.debug("Derived scope %s disposed", self._id)


def _merge_state(base: Any, incoming: Any) -> Any:
    """Shallow-merge *incoming* over *base*; ``_NOT_FOUND`` if not record-shaped.

    Every field of *incoming* applies, whether it was passed explicitly or
    filled from a default. Fields of *base* that *incoming*'s variant does
    not declare are dropped.
    """
    if isinstance(base, BaseModel) and isinstance(incoming, BaseModel):
        updates = {name: value for name, value in incoming if name != TAG_FIELD}
        if type(base) is type(incoming):
            return base.model_copy(update=updates)
        return type(incoming)(**updates)
    if isinstance(base, Mapping) and isinstance(incoming, Mapping):
        return {**base, **incoming}
    return _NOT_FOUND


class Context(Scope, Generic[S]):
    """A node in the context tree wrapping a store.

    Usage::

        with create_context(store) as context:
            context.provide_service(Logger, logger)
            context.select(lambda s: s.tag, render)
            context.dispatch("Load", {"id": 1})
    """

    def __init__(self, store: Store[S], config: ContextConfig | None = None) -> None:
        config = config or ContextConfig()
        if config.parent is not None:
            config.parent._check("create child context")
        super().__init__(config.parent, _mint_id(config.name or store.name))
        self._store = store
        # config.parent is held weakly by Scope.
        self._on_error = config.on_error
        self._name = config.name
        self._state: S = store.state
        self._subscriptions: dict[int, Callable[[Any], None]] = {}
        self._tokens = itertools.count()
        self._children: list[Context[Any]] = []
        self._forks: list[Context[S]] = []
        self._services = ServiceRegistry()
        parent = config.parent
        if parent is not None and parent._store is store:
            # Same store: commits reach this context through the parent.
            self._unsubscribe_store: Callable[[], None] = _noop
        else:
            self._unsubscribe_store = store.subscribe(self._notify_change)
        if parent is not None:
            parent._children.append(self)
        _logger.debug("Context %s created", self._id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def store(self) -> Store[S]:
        return self._store

    @property
    def store_name(self) -> str:
        return self._store.name

    @property
    def children(self) -> tuple[Context[Any], ...]:
        return tuple(self._children)

    @property
    def forks(self) -> tuple[Context[S], ...]:
        return tuple(self._forks)

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _error_handler(self) -> Callable[[BaseException], None] | None:
        for scope in self._chain():
            if isinstance(scope, Context) and scope._on_error is not None:
                return scope._on_error
        return None

    def _deliver(self, callback: Callable[[Any], None], state: Any) -> None:
        try:
            callback(state)
        except Exception as exc:
            handler = self._error_handler()
            if handler is None:
                _logger.debug("Subscriber failed in context %s", self._id, exc_info=True)
                return
            try:
                handler(exc)
            except Exception:
                _logger.warning("Error handler of context %s failed", self._id, exc_info=True)

    def _notify_change(self, new_state: S) -> None:
        if self._disposed:
            return
        self._state = new_state
        for callback in list(self._subscriptions.values()):
            self._deliver(callback, new_state)
        for child in list(self._children):
            if child._store is self._store:
                child._notify_change(new_state)
            else:
                child._propagate_change(new_state)

    def _propagate_change(self, parent_state: Any) -> None:
        # Children see ancestor state as-is; their own cached state is untouched.
        if self._disposed:
            return
        for callback in list(self._subscriptions.values()):
            self._deliver(callback, parent_state)
        for child in list(self._children):
            child._propagate_change(parent_state)

    def _register(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        token = next(self._tokens)
        self._subscriptions[token] = callback

        def unsubscribe() -> None:
            self._subscriptions.pop(token, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Reading state
    # ------------------------------------------------------------------

    def _current_value(self) -> Any:
        return self._state

    def get_current(self) -> S:
        self._check("get current state")
        return self._state

    get_state = get_current

    def subscribe(self, callback: Callable[[S], None]) -> Callable[[], None]:
        """Call *callback* with the current state now and on every change.

        The immediate call runs at the caller's site and lets exceptions
        propagate; later notifications route them to ``on_error``.
        """
        self._check("subscribe")
        callback(self._state)
        return self._register(callback)

    def select(self, selector: Callable[[S], T], callback: Callable[[T], None]) -> Callable[[], None]:
        """Deliver ``selector(state)`` to *callback* now and on every change."""
        self._check("select")

        def deliver(state: Any) -> None:
            callback(selector(state))

        deliver(self._state)
        return self._register(deliver)

    def subscribe_key(self, key: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        return self.select(lambda state: select_key(state, key), callback)

    def select_async(self, selector: Callable[[S], T]) -> AsyncSelection:
        """One-shot :meth:`select` resolving a future with the first delivered value.

        Requires a running event loop.
        """
        self._check("select")
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def resolve(value: T) -> None:
            if not future.done():
                future.set_result(value)

        unsubscribe = self.select(selector, resolve)
        if future.done():
            unsubscribe()
        return AsyncSelection(future, unsubscribe)

    def use(self, selector: Callable[[S], T] | None = None) -> S | T:
        """Read the current state, or one selected value, without staying subscribed."""
        self._check("use")
        if selector is None:
            return self._state
        captured: list[T] = []
        unsubscribe = self.select(selector, captured.append)
        unsubscribe()
        return captured[0]

    # ------------------------------------------------------------------
    # Writing state
    # ------------------------------------------------------------------

    def dispatch(self, action: str | Action[Any], payload: Any = None) -> asyncio.Future[S] | None:
        """Dispatch through the store with this context as the service accessor."""
        self._check("dispatch")
        return self._store.dispatch(action, payload, services=self)

    def merge(self, other: Context[Any]) -> None:
        """Shallow-merge *other*'s current state into this context's cached state.

        The store's committed state is not touched; the next commit replaces
        the merged view.
        """
        self._check("merge")
        other._check("merge")
        merged = _merge_state(self._state, other._state)
        if merged is _NOT_FOUND:
            _logger.debug("Context %s skipped merge of non-record state", self._id)
            return
        self._notify_change(merged)

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def _local_service(self, tag: ServiceTag[Any]) -> Any:
        if tag in self._services:
            return self._services.get(tag)
        return _NOT_FOUND

    def provide_service(self, tag: ServiceTag[T], implementation: T) -> Context[S]:
        """Provide *implementation* for *tag* in this context; returns ``self``."""
        self._check("provide service")
        self._services.provide(tag, implementation)
        return self

    def provide_services(self, services: ServiceRegistry | Mapping[ServiceTag[Any], Any]) -> Context[S]:
        self._check("provide service")
        for tag, implementation in services.items():
            self._services.provide(tag, implementation)
        return self

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def fork(self) -> Context[S]:
        """Create a context sharing this store, owned by this context.

        The fork observes the live store; it is not a snapshot. Services
        not provided on the fork resolve through this context.
        """
        self._check("fork")
        forked: Context[S] = Context(
            self._store,
            ContextConfig(on_error=self._on_error, name=f"{self._id.label}.fork"),
        )
        forked._parent_ref = weakref.ref(self)
        self._forks.append(forked)
        _logger.debug("Context %s forked as %s", self._id, forked.id)
        return forked

    def clone(self) -> Context[S]:
        """Create an independent root context over the same store.

        The clone starts without subscribers and with a copy of this
        context's own services.
        """
        self._check("clone")
        cloned: Context[S] = Context(
            self._store,
            ContextConfig(on_error=self._on_error, name=self._name),
        )
        cloned._services = self._services.copy()
        _logger.debug("Context %s cloned as %s", self._id, cloned.id)
        return cloned

    def _release(self, scope: Scope) -> None:
        if scope in self._children:
            self._children.remove(scope)  # type: ignore[arg-type]
        elif scope in self._forks:
            self._forks.remove(scope)  # type: ignore[arg-type]
        else:
            super()._release(scope)

    def dispose(self) -> None:
        """Unsubscribe and recursively dispose children, forks and derived scopes."""
        if self._disposed:
            return
        self._unsubscribe_store()
        self._subscriptions.clear()
        for child in list(self._children):
            child.dispose()
        for forked in list(self._forks):
            forked.dispose()
        for derived in list(self._derived):
            derived.dispose()
        self._children.clear()
        self._forks.clear()
        self._derived.clear()
        self._disposed = True
        parent = self.parent
        if parent is not None:
            parent._release(self)
        _logger.debug("Context %s disposed", self._id)


def create_context(store: Store[S], config: ContextConfig | None = None) -> Context[S]:
    """Create a context around *store* (a child of ``config.parent`` if given)."""
    return Context(store, config)
