"""Tests for the OAuth credentials file."""

from __future__ import annotations

import json
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.netatmo.base import OAuthTokens
from src.netatmo.credentials import CredentialStore
from src.netatmo.exceptions import AuthenticationError


def _write(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload))
    return path


class TestCredentialStore:
    def test_load_full_file(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.json",
            {
                "client_id": "cid",
                "client_secret": "secret",
                "token": {
                    "access_token": "access-1",
                    "token_type": "Bearer",
                    "refresh_token": "refresh-1",
                    "expiry": "2026-02-23T15:00:00Z",
                },
            },
        )

        creds = CredentialStore(path).load()
        tokens = creds.to_tokens()

        assert creds.client_id == "cid"
        assert tokens.access_token == "access-1"
        assert tokens.refresh_token == "refresh-1"
        assert tokens.expires_at == datetime(2026, 2, 23, 15, 0, tzinfo=timezone.utc)

    def test_zero_expiry_is_unset(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "config.json",
            {
                "client_id": "cid",
                "client_secret": "secret",
                "token": {"refresh_token": "r", "expiry": "0001-01-01T00:00:00Z"},
            },
        )
        assert CredentialStore(path).load().to_tokens().expires_at is None

    def test_missing_token_section(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.json", {"client_id": "cid", "client_secret": "secret"})

        tokens = CredentialStore(path).load().to_tokens()

        assert tokens.access_token == ""
        assert tokens.refresh_token is None

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(AuthenticationError, match="not found"):
            CredentialStore(tmp_path / "absent.json").load()

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(AuthenticationError):
            CredentialStore(path).load()

    def test_missing_client_credentials_raises(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.json", {"client_id": "cid"})
        with pytest.raises(AuthenticationError, match="client_secret"):
            CredentialStore(path).load()

    def test_save_tokens_preserves_client_and_restricts_mode(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "config.json", {"client_id": "cid", "client_secret": "secret"})
        store = CredentialStore(path)
        store.load()

        store.save_tokens(
            OAuthTokens(
                access_token="access-2",
                refresh_token="refresh-2",
                expires_at=datetime(2026, 2, 23, 18, 0, tzinfo=timezone.utc),
            )
        )

        saved = json.loads(path.read_text())
        assert saved["client_id"] == "cid"
        assert saved["client_secret"] == "secret"
        assert saved["token"]["access_token"] == "access-2"
        assert saved["token"]["refresh_token"] == "refresh-2"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert list(tmp_path.iterdir()) == [path]

        reloaded = CredentialStore(path).load().to_tokens()
        assert reloaded.expires_at == datetime(2026, 2, 23, 18, 0, tzinfo=timezone.utc)
