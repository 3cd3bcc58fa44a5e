"""Pattern matching over tagged values."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from tagix.exceptions import NonExhaustiveMatchError
from tagix.tagged_enum import tag_of

R = TypeVar("R")


def match_state(value: Any, cases: Mapping[str, Callable[[Any], R]]) -> R | None:
    """Apply the case for the value's tag; ``None`` when no case handles it."""
    tag = tag_of(value)
    handler = cases.get(tag) if tag is not None else None
    if handler is None:
        return None
    return handler(value)


def exhaust(value: Any, cases: Mapping[str, Callable[[Any], R]]) -> R:
    """Like :func:`match_state` but a missing case is an error.

    Raises
    ------
    NonExhaustiveMatchError
        If *cases* has no callable for the value's tag.
    """
    tag = tag_of(value)
    handler = cases.get(tag) if tag is not None else None
    if not callable(handler):
        raise NonExhaustiveMatchError(str(tag))
    return handler(value)
