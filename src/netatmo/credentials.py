"""Persistent OAuth credentials for the Netatmo API.

Credentials live in a small JSON file (by default
``~/.config/netatmo/config.json``)::

    {
      "client_id": "...",
      "client_secret": "...",
      "token": {
        "access_token": "...",
        "token_type": "Bearer",
        "refresh_token": "...",
        "expiry": "2026-10-18T12:00:00Z"
      }
    }

Netatmo rotates the refresh token on every refresh, so the store must be
rewritten each time the auth flow obtains a new token; ``CredentialStore.save_tokens``
is the observer wired into ``RefreshingOAuth2Auth`` for that purpose.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.netatmo.base import OAuthTokens
from src.netatmo.exceptions import AuthenticationError

logger = logging.getLogger("netatmo_sync.credentials")


class StoredToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expiry: datetime | None = None

    @field_validator("expiry", mode="after")
    @classmethod
    def _zero_time_is_unset(cls, value: datetime | None) -> datetime | None:
        # An unset expiry is written as 0001-01-01T00:00:00Z.
        if value is not None and value.year <= 1:
            return None
        return value


class StoredCredentials(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str = ""
    client_secret: str = ""
    token: StoredToken = Field(default_factory=StoredToken)

    def to_tokens(self) -> OAuthTokens:
        return OAuthTokens(
            access_token=self.token.access_token,
            refresh_token=self.token.refresh_token,
            expires_at=self.token.expiry,
            token_type=self.token.token_type or "Bearer",
        )


class CredentialStore:
    """Load and atomically rewrite the credentials JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data: StoredCredentials | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoredCredentials:
        """Read the credentials file.

        Raises:
            AuthenticationError: If the file is missing, unreadable, or lacks
                                 client credentials.
        """
        if not self._path.exists():
            raise AuthenticationError(f"Credentials file not found: {self._path}")
        try:
            data = StoredCredentials.model_validate_json(self._path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise AuthenticationError(f"Invalid credentials file {self._path}: {exc}") from exc
        if not data.client_id or not data.client_secret:
            raise AuthenticationError(f"{self._path} must set client_id and client_secret")
        self._data = data
        logger.debug("Loaded credentials from %s", self._path)
        return data

    def save_tokens(self, tokens: OAuthTokens) -> None:
        """Persist a refreshed token pair, keeping the client credentials."""
        data = self._data or StoredCredentials()
        data.token = StoredToken(
            access_token=tokens.access_token,
            token_type=tokens.token_type,
            refresh_token=tokens.refresh_token,
            expiry=tokens.expires_at,
        )
        self._data = data
        self._write(data)
        logger.info("Saved refreshed token to %s", self._path)

    def _write(self, data: StoredCredentials) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".credentials-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data.model_dump_json(indent=2))
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
