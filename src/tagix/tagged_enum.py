"""Tagged enum (discriminated union) builder.

:func:`tagged_enum` turns a mapping of ``variant name -> default fields``
into a closed set of frozen pydantic models, one per variant, each carrying
a ``tag`` discriminant pinned to its variant name:

* ``extra="forbid"`` keeps fields from leaking between variants.
* ``frozen=True`` makes values immutable and hashable (when their fields are).
* Equality is structural: two values of the same variant with equal fields
  compare equal.

The resulting :class:`TaggedEnum` also exposes a pydantic discriminated
union (``TaggedEnum.union``) so the state type can be embedded in other
models or used to validate raw mappings.
"""

from __future__ import annotations

import keyword
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, create_model

TAG_FIELD = "tag"


class TaggedValue(BaseModel):
    """Base for every generated variant model."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    tag: str


def tag_of(value: Any) -> str | None:
    """Return the discriminant of *value*, or ``None`` if it has none.

    Accepts generated variants, any object with a string ``tag``
    attribute, and mappings with a ``"tag"`` key.
    """
    if isinstance(value, TaggedValue):
        return value.tag
    if isinstance(value, Mapping):
        candidate = value.get(TAG_FIELD)
    else:
        candidate = getattr(value, TAG_FIELD, None)
    return candidate if isinstance(candidate, str) else None


def _check_field_name(tag: str, field_name: str) -> None:
    if field_name == TAG_FIELD:
        raise ValueError(f"Variant {tag!r} may not declare a {TAG_FIELD!r} field")
    if not isinstance(field_name, str) or not field_name.isidentifier() or keyword.iskeyword(field_name):
        raise ValueError(f"Variant {tag!r} field {field_name!r} is not a valid identifier")
    if field_name.startswith("_") or hasattr(BaseModel, field_name):
        raise ValueError(f"Variant {tag!r} field {field_name!r} clashes with the model API")


def _build_variant(tag: str, defaults: Mapping[str, Any]) -> type[TaggedValue]:
    fields: dict[str, Any] = {TAG_FIELD: (Literal[tag], tag)}
    for field_name, default in defaults.items():
        _check_field_name(tag, field_name)
        fields[field_name] = (Any, default)
    return create_model(tag, __base__=TaggedValue, **fields)


class VariantConstructor:
    """Callable building one variant from its defaults plus overrides."""

    __slots__ = ("tag", "model")

    def __init__(self, model: type[TaggedValue]) -> None:
        self.model = model
        self.tag: str = model.model_fields[TAG_FIELD].default

    def __call__(self, overrides: Mapping[str, Any] | None = None, /, **fields: Any) -> TaggedValue:
        values = {**overrides, **fields} if overrides else fields
        return self.model(**values)

    def __repr__(self) -> str:
        return f"<VariantConstructor {self.tag}>"


class TaggedEnum:
    """A closed set of tagged variants.

    Usage::

        LoadState = tagged_enum({
            "Idle": {},
            "Loading": {},
            "Ready": {"value": 0},
        })
        state = LoadState.Ready(value=42)
        state.tag  # "Ready"
    """

    def __init__(self, definition: Mapping[str, Mapping[str, Any]]) -> None:
        for tag in definition:
            if not isinstance(tag, str) or not tag.isidentifier() or keyword.iskeyword(tag):
                raise ValueError(f"Variant name {tag!r} is not a valid identifier")
            # Constructors are reached through attribute access, so a name
            # already on the class would be unreachable.
            if tag.startswith("_") or hasattr(TaggedEnum, tag):
                raise ValueError(f"Variant name {tag!r} clashes with the TaggedEnum API")
        variants = {tag: _build_variant(tag, defaults) for tag, defaults in definition.items()}
        self._variants: Mapping[str, type[TaggedValue]] = MappingProxyType(variants)
        self._constructors: dict[str, VariantConstructor] = {
            tag: VariantConstructor(model) for tag, model in variants.items()
        }
        self._defaults: Mapping[str, Mapping[str, Any]] = MappingProxyType(
            {tag: MappingProxyType(dict(defaults)) for tag, defaults in definition.items()}
        )
        self._adapter: TypeAdapter[Any] | None = None

    def __getattr__(self, name: str) -> VariantConstructor:
        # Only reached for names that are not regular attributes.
        constructors = self.__dict__.get("_constructors")
        if constructors is not None and name in constructors:
            return constructors[name]
        raise AttributeError(f"{type(self).__name__} has no variant {name!r}")

    def __getitem__(self, tag: str) -> VariantConstructor:
        return self._constructors[tag]

    def __contains__(self, tag: object) -> bool:
        return tag in self._variants

    def __iter__(self) -> Iterator[str]:
        return iter(self._variants)

    def __len__(self) -> int:
        return len(self._variants)

    def __repr__(self) -> str:
        return f"TaggedEnum({', '.join(self._variants)})"

    @property
    def tags(self) -> tuple[str, ...]:
        """Declared variant names, in declaration order."""
        return tuple(self._variants)

    @property
    def variants(self) -> Mapping[str, type[TaggedValue]]:
        return self._variants

    @property
    def defaults(self) -> Mapping[str, Mapping[str, Any]]:
        """Read-only declared defaults per variant."""
        return self._defaults

    @property
    def union(self) -> Any:
        """Pydantic discriminated union over all variants."""
        models = tuple(self._variants.values())
        if len(models) == 1:
            return models[0]
        return Annotated[Union[models], Field(discriminator=TAG_FIELD)]  # noqa: UP007

    def parse(self, data: Any) -> TaggedValue:
        """Validate a raw mapping (or variant) into the matching variant model."""
        if self._adapter is None:
            self._adapter = TypeAdapter(self.union)
        return self._adapter.validate_python(data)

    def is_variant(self, value: Any) -> bool:
        """Whether *value* is an instance of one of this enum's variants."""
        return isinstance(value, tuple(self._variants.values()))

    def is_(self, tag: str) -> Callable[[Any], bool]:
        """Return a predicate matching values of variant *tag*.

        Unknown tags produce a predicate that is always ``False``.
        """
        model = self._variants.get(tag)

        def predicate(value: Any) -> bool:
            return model is not None and isinstance(value, model)

        return predicate

    def match(
        self,
        value_or_cases: Any,
        cases: Mapping[str, Callable[[Any], Any]] | None = None,
    ) -> Any:
        """Dispatch on the variant tag.

        ``match(value, cases)`` applies the handler for ``value.tag``;
        ``match(cases)`` returns a function of the value. A missing case
        raises ``KeyError``.
        """
        if cases is None:
            curried: Mapping[str, Callable[[Any], Any]] = value_or_cases
            return lambda value: curried[tag_of(value)](value)  # type: ignore[index]
        return cases[tag_of(value_or_cases)](value_or_cases)  # type: ignore[index]


def tagged_enum(definition: Mapping[str, Mapping[str, Any]]) -> TaggedEnum:
    """Build a :class:`TaggedEnum` from ``{variant: {field: default}}``."""
    return TaggedEnum(definition)
