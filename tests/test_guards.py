from __future__ import annotations

from typing import Any

import pytest

from tagix.exceptions import PayloadValidationError, RequiredPayloadError, UnexpectedStateError
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
from tagix.store import create_store
from tagix.tagged_enum import tagged_enum

Session = tagged_enum({"Anonymous": {}, "SignedIn": {"user": ""}})


def test_when_is_total_over_unknown_tags() -> None:
    assert when("SignedIn")(Session.SignedIn(user="ana"))
    assert not when("SignedIn")(Session.Anonymous())
    assert not when("Undeclared")(Session.Anonymous())
    assert not when("SignedIn")(None)


def test_on_applies_only_for_matching_tag() -> None:
    user_of = on("SignedIn")(lambda s: s.user)

    assert user_of(Session.SignedIn(user="ana")) == "ana"
    assert user_of(Session.Anonymous()) is None


def test_with_state_is_uncurried_on() -> None:
    assert with_state(Session.SignedIn(user="bo"), "SignedIn", lambda s: s.user) == "bo"
    assert with_state(Session.Anonymous(), "SignedIn", lambda s: s.user) is None


def test_tag_helpers() -> None:
    value = Session.SignedIn(user="ana")

    assert get_tag(value) == "SignedIn"
    assert has_tag(value, "SignedIn")
    assert not has_tag(value, "Anonymous")
    assert as_variant(value, "SignedIn") is value
    assert as_variant(value, "Anonymous") is None


def test_store_state_guards() -> None:
    store = create_store(Session.Anonymous(), Session)

    assert is_in_state(store, "Anonymous")
    assert not is_in_state(store, "SignedIn")
    assert ensure_state(store, "Anonymous") == Session.Anonymous()


def test_ensure_state_raises_with_expected_and_actual() -> None:
    store = create_store(Session.Anonymous(), Session)

    with pytest.raises(UnexpectedStateError) as excinfo:
        ensure_state(store, "SignedIn")

    assert excinfo.value.expected == "SignedIn"
    assert excinfo.value.actual == "Anonymous"


def test_from_payload_requires_a_value() -> None:
    extract = from_payload()

    assert extract({"id": 1}) == {"id": 1}
    assert extract(0) == 0
    with pytest.raises(RequiredPayloadError, match="Payload is required"):
        extract(None)


def test_validate_payload_uses_custom_or_default_message() -> None:
    positive = validate_payload(lambda p: p > 0, "must be positive")
    non_empty = validate_payload(bool)

    positive(1)
    with pytest.raises(PayloadValidationError, match="must be positive"):
        positive(-1)
    with pytest.raises(PayloadValidationError, match="Payload validation failed"):
        non_empty("")


@pytest.mark.parametrize(
    ("guard", "accepted", "rejected"),
    [
        (is_string_payload, ["", "x"], [1, None, b"x"]),
        (is_number_payload, [0, 1.5, -3], [True, "1", None]),
        (is_boolean_payload, [True, False], [0, "true", None]),
        (is_record_payload, [{}, {"a": 1}], [[], "a", None]),
        (is_array_payload, [[], (1,)], [{}, "ab", None]),
        (is_plain_object_payload, [{}, {"a": 1}], [[], Session.Anonymous(), None]),
        (not_empty_string, ["x"], ["", 1, None]),
        (positive_number, [1, 0.5], [0, -1, True, "5"]),
        (non_empty_array, [[1], (0,)], [[], (), "x"]),
    ],
)
def test_payload_type_guards(guard: Any, accepted: list[Any], rejected: list[Any]) -> None:
    assert all(guard(value) for value in accepted)
    assert not any(guard(value) for value in rejected)


def test_payload_guard_composes_with_validate_payload() -> None:
    check = validate_payload(positive_number, "amount must be positive")

    check(3)
    with pytest.raises(PayloadValidationError, match="amount must be positive"):
        check(-2)
