"""Tests for the ``dave`` command line."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import uvicorn
from click.testing import CliRunner

from dave.cli import main
from dave.user_api import aws, log
from dave.user_api.store.dynamodb import DynamoWorkspaceStore


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(log, "setup_logging", lambda level="INFO": None)


@pytest.fixture
def uvicorn_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append({"app": app, **kwargs}))
    return calls


def _configure_auth(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DAVE_AUTH_DOMAIN", "auth.example.com")
    monkeypatch.setenv("DAVE_AUTH_AUDIENCE", "https://dave.example.com")
    monkeypatch.setenv("DAVE_AUTH_CLIENT_ID", "client-123")


def test_api_uses_settings(monkeypatch: pytest.MonkeyPatch, uvicorn_calls: list[dict[str, Any]]) -> None:
    _configure_auth(monkeypatch)
    monkeypatch.setenv("DAVE_PORT", "9000")

    result = CliRunner().invoke(main, ["api"])

    assert result.exit_code == 0, result.output
    assert uvicorn_calls == [
        {"app": "dave.user_api.app:app", "host": "0.0.0.0", "port": 9000, "reload": False, "log_level": "warning"},
    ]


def test_api_options_override_settings(monkeypatch: pytest.MonkeyPatch, uvicorn_calls: list[dict[str, Any]]) -> None:
    _configure_auth(monkeypatch)

    result = CliRunner().invoke(main, ["api", "--host", "127.0.0.1", "--port", "8000", "--reload"])

    assert result.exit_code == 0, result.output
    assert uvicorn_calls[0]["host"] == "127.0.0.1"
    assert uvicorn_calls[0]["port"] == 8000
    assert uvicorn_calls[0]["reload"] is True


def test_api_requires_auth_settings(monkeypatch: pytest.MonkeyPatch, uvicorn_calls: list[dict[str, Any]]) -> None:
    monkeypatch.setenv("DAVE_AUTH_DOMAIN", "auth.example.com")

    result = CliRunner().invoke(main, ["api"])

    assert result.exit_code != 0
    assert "DAVE_AUTH_AUDIENCE" in result.output
    assert "DAVE_AUTH_CLIENT_ID" in result.output
    assert uvicorn_calls == []


@pytest.mark.parametrize(("created", "message"), [(True, "created"), (False, "already exists")])
def test_store_init(monkeypatch: pytest.MonkeyPatch, created: bool, message: str) -> None:
    tables: list[str] = []

    def ensure_table(self: DynamoWorkspaceStore) -> bool:
        tables.append(self._table)
        return created

    monkeypatch.setattr(aws, "create_client", lambda *args, **kwargs: MagicMock())
    monkeypatch.setattr(DynamoWorkspaceStore, "ensure_table", ensure_table)

    result = CliRunner().invoke(main, ["store", "init", "--table", "dev-workspaces"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == f"Table dev-workspaces {message}."
    assert tables == ["dev-workspaces"]
