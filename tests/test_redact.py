from __future__ import annotations

from tagix._redact import redact_for_log
from tagix.tagged_enum import tagged_enum


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "user": "ana",
        "Token": "SIG",
        "password": "pw",
        "nested": {"apiKey": "deadbeef", "page": 2},
    }

    redacted = redact_for_log(payload)
    assert redacted["user"] == "ana"
    assert redacted["Token"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["apiKey"] == "<redacted>"
    assert redacted["nested"]["page"] == 2


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_dumps_models_and_caps_sequences() -> None:
    Session = tagged_enum({"SignedIn": {"user": "", "token": ""}})

    assert redact_for_log(Session.SignedIn(user="ana", token="t")) == {
        "tag": "SignedIn",
        "user": "ana",
        "token": "<redacted>",
    }
    assert redact_for_log(list(range(5)), max_items=2) == [0, 1, "<3 more>"]
    assert redact_for_log(b"abc") == "<bytes:3b>"


def test_redact_for_log_honours_custom_keys() -> None:
    assert redact_for_log({"pin": "1234", "token": "t"}, redact_keys={"PIN"}) == {"pin": "<redacted>", "token": "t"}
