"""Tests for environment-driven configuration."""

import pytest

from purchases_platform.config import (
    API_KEY_ENV_VAR,
    DEFAULT_WORKER_NAME,
    WORKER_NAME_ENV_VAR,
    build_auth_headers,
    resolve_api_key,
    worker_name,
)


def test_explicit_key_wins(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "from_env")

    assert resolve_api_key("  explicit  ") == "explicit"


def test_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "from_env")

    assert resolve_api_key() == "from_env"


def test_missing_key_raises(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)

    with pytest.raises(ValueError, match=API_KEY_ENV_VAR):
        resolve_api_key("   ")


def test_auth_headers():
    assert build_auth_headers("abc") == {"Authorization": "Bearer abc"}


def test_worker_name_default_and_override(monkeypatch):
    monkeypatch.delenv(WORKER_NAME_ENV_VAR, raising=False)
    assert worker_name() == DEFAULT_WORKER_NAME

    monkeypatch.setenv(WORKER_NAME_ENV_VAR, "custom")
    assert worker_name() == "custom"
