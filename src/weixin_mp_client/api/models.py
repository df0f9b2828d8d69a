"""Data models for the WeChat Official Account API.

This module contains the value types passed between the API client layers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Credential:
    """Access token with expiration tracking.

    Attributes:
        value: The access token string.
        obtained_at: Unix timestamp when the token was fetched.
        ttl: Token lifetime in seconds as reported by the platform.
    """

    value: str
    obtained_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.obtained_at + self.ttl

    def is_valid(self, now: float | None = None, safety_margin: float = 300.0) -> bool:
        """Check whether the token can still be used.

        Args:
            now: Current Unix time. Defaults to ``time.time()``.
            safety_margin: Consider expired this many seconds before real expiry.

        Returns:
            True if ``now < obtained_at + ttl - safety_margin``.
        """
        if now is None:
            now = time.time()
        return now < self.expires_at - safety_margin

    def __repr__(self) -> str:
        # Keep the token itself out of logs and tracebacks
        return f"Credential(obtained_at={self.obtained_at!r}, ttl={self.ttl!r})"


class MediaKind(str, Enum):
    """Media categories accepted by the upload endpoint."""

    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    THUMB = "thumb"


@dataclass(frozen=True)
class UploadedMedia:
    """Decoded media upload response.

    Attributes:
        type: Media kind echoed back by the platform.
        media_id: Identifier to reference the media in messages.
        created_at: Unix timestamp of the upload.
    """

    type: str
    media_id: str
    created_at: int = 0

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> UploadedMedia:
        # thumb uploads answer with thumb_media_id instead of media_id
        media_id = data.get("media_id") or data.get("thumb_media_id")
        if not media_id:
            raise ValueError(f"Upload response carries no media id: {data!r}")
        return cls(
            type=data.get("type", ""),
            media_id=str(media_id),
            created_at=int(data.get("created_at", 0)),
        )


@dataclass(frozen=True)
class QRTicket:
    """QR code ticket issued by ``qrcode/create``.

    Attributes:
        ticket: Ticket used to fetch the QR code image.
        expire_seconds: Lifetime of a temporary code (0 for permanent codes).
        url: Content encoded in the QR code.
    """

    ticket: str
    expire_seconds: int = 0
    url: str = ""
