"""Read-only stores computed from other stores.

A :class:`DerivedStore` recomputes its value whenever any source store
commits and notifies its own subscribers only when the value changed.
It has no actions: the sources own the state.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

from tagix.store.store import Store

_logger = logging.getLogger(__name__)

R = TypeVar("R")

Deriver = Callable[[tuple[Any, ...]], R]


def _default_equals(previous: Any, current: Any) -> bool:
    return bool(previous == current)


class DerivedStore(Generic[R]):
    """Value derived from the states of one or more source stores.

    Usage::

        total = derive_store(cart, discount, deriver=lambda states: states[0].sum * states[1].rate)
        total.subscribe(print)
        total.destroy()

    A failing recomputation keeps the previous value. The error is raised
    once, by the next read of :attr:`state`, and then cleared.
    """

    def __init__(
        self,
        sources: Sequence[Store[Any]],
        deriver: Deriver[R],
        equals: Callable[[R, R], bool] | None = None,
    ) -> None:
        if not sources:
            raise ValueError("derive_store needs at least one source store")
        self._sources = tuple(sources)
        self._deriver = deriver
        self._equals = equals or _default_equals
        self._subscribers: dict[int, Callable[[R], None]] = {}
        self._tokens = itertools.count()
        self._last_error: Exception | None = None
        self._destroyed = False
        self._value = self._compute()
        self._unsubscribers = [source.subscribe(self._on_source_change) for source in self._sources]

    @property
    def state(self) -> R:
        if self._last_error is not None:
            error, self._last_error = self._last_error, None
            raise error
        return self._value

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[[R], None]) -> Callable[[], None]:
        """Call *callback* with the current value now and on every change."""
        callback(self._value)
        token = next(self._tokens)
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def destroy(self) -> None:
        """Stop following the sources; the last value stays readable."""
        if self._destroyed:
            return
        self._destroyed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._subscribers.clear()
        _logger.debug("Derived store over %s destroyed", ", ".join(s.name for s in self._sources))

    def _compute(self) -> R:
        return self._deriver(tuple(source.state for source in self._sources))

    def _on_source_change(self, _state: Any) -> None:
        if self._destroyed:
            return
        try:
            current = self._compute()
        except Exception as exc:
            _logger.debug("Derived store recompute failed", exc_info=True)
            self._last_error = exc
            return

        self._last_error = None
        if self._equals(self._value, current):
            return
        self._value = current
        for callback in list(self._subscribers.values()):
            callback(current)


def derive_store(
    *sources: Store[Any],
    deriver: Deriver[R],
    equals: Callable[[R, R], bool] | None = None,
) -> DerivedStore[R]:
    """Create a :class:`DerivedStore` over *sources*.

    Parameters
    ----------
    *sources : Store
        Stores whose states feed the deriver, in order.
    deriver : callable
        Receives the tuple of current source states and returns the value.
    equals : callable, optional
        ``equals(previous, current)``; subscribers are notified only when it
        returns false. Defaults to ``==``.
    """
    return DerivedStore(sources, deriver, equals)
