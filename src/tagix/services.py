"""Service tags and registries for dependency injection.

A :class:`ServiceTag` names a capability. Lookups are keyed by the tag's
identity (its opaque ``token``), never by the implementation's type, so
no runtime shape checking happens: a mismatched implementation surfaces
as an ordinary attribute error where a handler uses it.

Tags are interned per name in a :class:`ServiceTagRegistry`. The
module-level default registry lives for the whole process and never
evicts; pass an explicit registry to :func:`create_service_tag` to keep
tag identity scoped (tests, plugins).
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator, Mapping
from typing import Any, Generic, Protocol, TypeVar, cast, overload

from tagix.exceptions import MissingServiceError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclasses.dataclass(frozen=True, slots=True)
class ServiceTag(Generic[T]):
    """Identity token for an injectable capability."""

    name: str
    token: object = dataclasses.field(default_factory=object, repr=False)

    def __str__(self) -> str:
        return self.name


class ServiceTagRegistry:
    """Interned ``name -> ServiceTag`` registry.

    The same name always yields the same tag, whatever type parameter the
    caller has in mind.
    """

    def __init__(self) -> None:
        self._tags: dict[str, ServiceTag[Any]] = {}

    def tag(self, name: str) -> ServiceTag[Any]:
        tag = self._tags.get(name)
        if tag is None:
            tag = ServiceTag(name)
            self._tags[name] = tag
        return tag

    def __contains__(self, name: object) -> bool:
        return name in self._tags

    def __len__(self) -> int:
        return len(self._tags)

    def __iter__(self) -> Iterator[ServiceTag[Any]]:
        return iter(self._tags.values())


default_tag_registry = ServiceTagRegistry()


@overload
def create_service_tag(name: str, interface: type[T], *, registry: ServiceTagRegistry | None = None) -> ServiceTag[T]: ...


@overload
def create_service_tag(name: str, interface: None = None, *, registry: ServiceTagRegistry | None = None) -> ServiceTag[Any]: ...


def create_service_tag(
    name: str,
    interface: type[Any] | None = None,
    *,
    registry: ServiceTagRegistry | None = None,
) -> ServiceTag[Any]:
    """Return the tag interned under *name*.

    *interface* only informs static typing; it does not take part in
    identity.
    """
    return (registry or default_tag_registry).tag(name)


class ServiceAccessor(Protocol):
    """What an action handler receives to resolve services."""

    def get_service(self, tag: ServiceTag[T]) -> T: ...

    def get_service_optional(self, tag: ServiceTag[T]) -> T | None: ...


class ServiceRegistry:
    """Token-keyed map of service implementations."""

    def __init__(self, services: Mapping[ServiceTag[Any], Any] | None = None) -> None:
        self._services: dict[object, tuple[ServiceTag[Any], Any]] = {}
        for tag, implementation in (services or {}).items():
            self.provide(tag, implementation)

    def provide(self, tag: ServiceTag[T], implementation: T) -> ServiceRegistry:
        if tag.token in self._services:
            _logger.debug("Replacing provider for service %s", tag.name)
        self._services[tag.token] = (tag, implementation)
        return self

    def get(self, tag: ServiceTag[T]) -> T:
        entry = self._services.get(tag.token)
        if entry is None:
            raise MissingServiceError(tag.name)
        return cast(T, entry[1])

    def get_optional(self, tag: ServiceTag[T]) -> T | None:
        entry = self._services.get(tag.token)
        return None if entry is None else cast(T, entry[1])

    def items(self) -> Iterator[tuple[ServiceTag[Any], Any]]:
        return iter(list(self._services.values()))

    def copy(self) -> ServiceRegistry:
        clone = ServiceRegistry()
        clone._services = dict(self._services)
        return clone

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, ServiceTag) and tag.token in self._services

    def __len__(self) -> int:
        return len(self._services)


def create_service_registry(services: Mapping[ServiceTag[Any], Any]) -> ServiceRegistry:
    """Build a registry from ``{tag: implementation}``."""
    return ServiceRegistry(services)


class _NoServices:
    """Accessor used when a store dispatches outside any context."""

    def get_service(self, tag: ServiceTag[T]) -> T:
        raise MissingServiceError(tag.name)

    def get_service_optional(self, tag: ServiceTag[T]) -> T | None:
        return None


EMPTY_SERVICES: ServiceAccessor = _NoServices()
