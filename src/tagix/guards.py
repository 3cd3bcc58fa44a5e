"""Tag guards and payload guards.

Every tag guard is total: a value without the requested tag (including
tags the enum never declared) yields ``False`` or ``None``, never an
exception. Only ``ensure_state`` and the payload guards raise, and they
do so on purpose.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar

from tagix.exceptions import PayloadValidationError, RequiredPayloadError, UnexpectedStateError
from tagix.tagged_enum import tag_of

R = TypeVar("R")
T = TypeVar("T")


class StateHolder(Protocol):
    """Anything exposing a current tagged ``state`` (a Store)."""

    @property
    def state(self) -> Any: ...


def when(tag: str) -> Callable[[Any], bool]:
    """Return a predicate that is ``True`` iff the value's tag is *tag*."""

    def predicate(value: Any) -> bool:
        return tag_of(value) == tag

    return predicate


def on(tag: str) -> Callable[[Callable[[Any], R]], Callable[[Any], R | None]]:
    """Curried conditional extraction: ``on(tag)(fn)(value)``.

    Applies *fn* only when the value carries *tag*, otherwise returns ``None``.
    """

    def bind(fn: Callable[[Any], R]) -> Callable[[Any], R | None]:
        def apply(value: Any) -> R | None:
            return fn(value) if tag_of(value) == tag else None

        return apply

    return bind


def with_state(value: Any, tag: str, fn: Callable[[Any], R]) -> R | None:
    """Uncurried :func:`on`."""
    return fn(value) if tag_of(value) == tag else None


def get_tag(value: Any) -> str | None:
    return tag_of(value)


def has_tag(value: Any, tag: str) -> bool:
    return tag_of(value) == tag


def is_in_state(store: StateHolder, tag: str) -> bool:
    return tag_of(store.state) == tag


def as_variant(value: Any, tag: str) -> Any | None:
    """Return *value* itself when it carries *tag*, else ``None``."""
    return value if tag_of(value) == tag else None


def ensure_state(store: StateHolder, tag: str) -> Any:
    """Return the store's state, requiring it to carry *tag*.

    Raises
    ------
    UnexpectedStateError
        If the current state has a different tag.
    """
    state = store.state
    actual = tag_of(state)
    if actual != tag:
        raise UnexpectedStateError(expected=tag, actual=str(actual))
    return state


def from_payload() -> Callable[[T | None], T]:
    """Return an extractor that rejects a missing (``None``) payload."""

    def extract(payload: T | None) -> T:
        if payload is None:
            raise RequiredPayloadError()
        return payload

    return extract


def validate_payload(predicate: Callable[[T], bool], message: str | None = None) -> Callable[[T], None]:
    """Return a validator raising ``PayloadValidationError`` when *predicate* fails."""

    def validate(payload: T) -> None:
        if not predicate(payload):
            raise PayloadValidationError(message or "Payload validation failed")

    return validate


# ----------------------------------------------------------------------
# Payload type guards, usable as ``validate_payload`` predicates
# ----------------------------------------------------------------------


def is_string_payload(value: Any) -> bool:
    return isinstance(value, str)


def is_number_payload(value: Any) -> bool:
    """``int`` or ``float``; ``bool`` is not a number here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_boolean_payload(value: Any) -> bool:
    return isinstance(value, bool)


def is_record_payload(value: Any) -> bool:
    """Any mapping."""
    return isinstance(value, Mapping)


def is_array_payload(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_plain_object_payload(value: Any) -> bool:
    """A plain ``dict``; mapping subclasses and models do not count."""
    return type(value) is dict


def not_empty_string(value: Any) -> bool:
    return is_string_payload(value) and len(value) > 0


def positive_number(value: Any) -> bool:
    return is_number_payload(value) and value > 0


def non_empty_array(value: Any) -> bool:
    return is_array_payload(value) and len(value) > 0
