"""Persistence of the access token between process restarts."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from ..core.logger import get_logger
from .models import Credential

logger = get_logger("api.token_store")


class TokenStore(Protocol):
    """Key/value blob store consulted by the credential cache."""

    def load(self) -> Credential | None:
        """Return the persisted credential, or None if nothing usable is stored."""
        ...

    def save(self, credential: Credential) -> None:
        """Persist ``credential``, replacing any previous value."""
        ...


class FileTokenStore:
    """Store the access token as a small JSON document on disk.

    Unreadable or malformed files are treated as an empty store. Writes go
    through a temporary file in the same directory and are moved into place,
    so a crash never leaves a truncated token file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Credential | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
            return Credential(
                value=str(data["access_token"]),
                obtained_at=float(data["obtained_at"]),
                ttl=float(data["expires_in"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable token cache %s: %s", self.path, exc)
            return None

    def save(self, credential: Credential) -> None:
        payload = {
            "access_token": credential.value,
            "obtained_at": credential.obtained_at,
            "expires_in": credential.ttl,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".token-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Access token persisted to %s", self.path)
