"""tagix - Tagged-variant state machines with a store and hierarchical contexts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tagix")
except PackageNotFoundError:
    __version__ = "0+local"
from tagix.config import ContextConfig, StoreConfig
from tagix.context import AsyncSelection, Context, ContextId, DerivedContext, create_context
from tagix.exceptions import (
    ActionNotFoundError,
    DisposedContextError,
    InvalidActionError,
    MissingServiceError,
    NonExhaustiveMatchError,
    PayloadError,
    PayloadValidationError,
    RequiredPayloadError,
    StateTransitionError,
    TagixError,
    UnexpectedStateError,
    is_recoverable,
)
from tagix.guards import (
    as_variant,
    ensure_state,
    from_payload,
    get_tag,
    has_tag,
    is_array_payload,
    is_boolean_payload,
    is_in_state,
    is_number_payload,
    is_plain_object_payload,
    is_record_payload,
    is_string_payload,
    non_empty_array,
    not_empty_string,
    on,
    positive_number,
    validate_payload,
    when,
    with_state,
)
from tagix.match import exhaust, match_state
from tagix.selectors import (
    combine_selectors,
    get_or_default,
    get_state,
    has_property,
    memoize,
    patch,
    pluck,
    select,
)
from tagix.services import (
    ServiceAccessor,
    ServiceRegistry,
    ServiceTag,
    ServiceTagRegistry,
    create_service_registry,
    create_service_tag,
    default_tag_registry,
)
from tagix.store import (
    Action,
    Deferred,
    DerivedStore,
    Immediate,
    Recovered,
    MiddlewareAPI,
    Store,
    create_action,
    create_action_group,
    create_async_action,
    create_logging_middleware,
    create_store,
    derive_store,
    transitions,
)
from tagix.tagged_enum import TaggedEnum, TaggedValue, VariantConstructor, tag_of, tagged_enum

__all__ = [
    "__version__",
    "Action",
    "ActionNotFoundError",
    "AsyncSelection",
    "Context",
    "ContextConfig",
    "ContextId",
    "Deferred",
    "DerivedContext",
    "DerivedStore",
    "DisposedContextError",
    "Immediate",
    "InvalidActionError",
    "MiddlewareAPI",
    "MissingServiceError",
    "NonExhaustiveMatchError",
    "PayloadError",
    "PayloadValidationError",
    "Recovered",
    "RequiredPayloadError",
    "ServiceAccessor",
    "ServiceRegistry",
    "ServiceTag",
    "ServiceTagRegistry",
    "StateTransitionError",
    "Store",
    "StoreConfig",
    "TagixError",
    "TaggedEnum",
    "TaggedValue",
    "UnexpectedStateError",
    "VariantConstructor",
    "as_variant",
    "combine_selectors",
    "create_action",
    "create_action_group",
    "create_async_action",
    "create_context",
    "create_logging_middleware",
    "create_service_registry",
    "create_service_tag",
    "create_store",
    "default_tag_registry",
    "derive_store",
    "ensure_state",
    "exhaust",
    "from_payload",
    "get_or_default",
    "get_state",
    "get_tag",
    "has_property",
    "has_tag",
    "is_array_payload",
    "is_boolean_payload",
    "is_in_state",
    "is_number_payload",
    "is_plain_object_payload",
    "is_record_payload",
    "is_recoverable",
    "is_string_payload",
    "match_state",
    "memoize",
    "non_empty_array",
    "not_empty_string",
    "on",
    "patch",
    "pluck",
    "positive_number",
    "select",
    "tag_of",
    "tagged_enum",
    "transitions",
    "validate_payload",
    "when",
    "with_state",
]
