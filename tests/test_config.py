from __future__ import annotations

import pytest

from tagix.config import ContextConfig, StoreConfig


def test_store_config_defaults() -> None:
    config = StoreConfig()

    assert config.name == "tagix"
    assert not config.strict
    assert not config.strict_actions
    assert config.max_error_history == 50
    assert tuple(config.middlewares) == ()


def test_store_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAGIX_STORE_NAME", "orders")
    monkeypatch.setenv("TAGIX_STRICT", "yes")
    monkeypatch.setenv("TAGIX_STRICT_ACTIONS", "off")
    monkeypatch.setenv("TAGIX_MAX_ERROR_HISTORY", "5")

    config = StoreConfig.from_env()

    assert config.name == "orders"
    assert config.strict
    assert not config.strict_actions
    assert config.max_error_history == 5


def test_store_config_overrides_beat_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAGIX_STRICT", "1")
    monkeypatch.setenv("TAGIX_MAX_ERROR_HISTORY", "5")

    config = StoreConfig.from_env(strict=False, max_error_history=1)

    assert not config.strict
    assert config.max_error_history == 1


def test_unparseable_bool_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAGIX_STRICT", "maybe")

    assert not StoreConfig.from_env().strict


def test_configs_are_frozen() -> None:
    with pytest.raises(AttributeError):
        StoreConfig().strict = True  # type: ignore[misc]
    with pytest.raises(AttributeError):
        ContextConfig().name = "x"  # type: ignore[misc]
