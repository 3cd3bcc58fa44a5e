"""Custom exception hierarchy for tagix."""

from __future__ import annotations

from typing import ClassVar


class TagixError(Exception):
    """Base exception for all tagix errors."""

    code: ClassVar[int] = 1000
    category: ClassVar[str] = "core"


class StateTransitionError(TagixError):
    """A handler produced a state whose tag the store does not declare.

    Only raised when the store runs with ``strict=True`` and was built
    with a :class:`~tagix.tagged_enum.TaggedEnum`.
    """

    code = 1001
    category = "state"

    def __init__(self, *, expected: list[str], actual: str, action: str = "") -> None:
        self.expected = expected
        self.actual = actual
        self.action = action
        super().__init__(f"Action {action!r} produced unknown state {actual!r}; expected one of {expected}")


class InvalidActionError(TagixError):
    """Action descriptor or handler result is malformed."""

    code = 1002
    category = "action"


class ActionNotFoundError(TagixError):
    """Dispatched name has no registered handler (``strict_actions`` only)."""

    code = 1004
    category = "action"

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Action {action!r} is not registered")


class PayloadError(TagixError):
    """Payload rejected by a payload guard."""

    code = 1005
    category = "payload"


class NonExhaustiveMatchError(TagixError):
    """``exhaust`` found no case for the value's tag."""

    code = 1007
    category = "match"

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"No case handles tag {tag!r}")


class RequiredPayloadError(PayloadError):
    """Payload was required but missing."""

    code = 1008

    def __init__(self, message: str = "Payload is required") -> None:
        super().__init__(message)


class PayloadValidationError(PayloadError):
    """Payload failed a validation predicate."""

    code = 1009

    def __init__(self, message: str = "Payload validation failed") -> None:
        super().__init__(message)


class UnexpectedStateError(TagixError):
    """State is not in the variant the caller required."""

    code = 1010
    category = "state"

    def __init__(self, *, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected state {expected!r}, got {actual!r}")


class DisposedContextError(TagixError):
    """Operation attempted on a context that has been disposed.

    ``operation`` names the rejected call (e.g. ``"dispatch"``) so callers
    can tell which access outlived the scope.
    """

    code = 1020
    category = "context"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation} on disposed context")


class MissingServiceError(TagixError):
    """No provider for a service tag anywhere in the context chain."""

    code = 1030
    category = "service"

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Service {tag_name} has not been provided")


_RECOVERABLE_CATEGORIES: frozenset[str] = frozenset({"state", "action", "payload"})


def is_recoverable(error: BaseException) -> bool:
    """Whether *error* belongs to a category callers can typically retry past."""
    if not isinstance(error, TagixError):
        return False
    return error.category in _RECOVERABLE_CATEGORIES
