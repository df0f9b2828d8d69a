"""Fakes shared by the test suite."""

from .media_server import FakeMediaServer
from .platform import (
    GET_MEDIA_URL,
    QRCODE_URL,
    SEND_URL,
    TOKEN_URL,
    UPLOAD_URL,
    FakeClock,
    token_json,
)

__all__ = [
    "FakeClock",
    "FakeMediaServer",
    "token_json",
    "TOKEN_URL",
    "SEND_URL",
    "QRCODE_URL",
    "UPLOAD_URL",
    "GET_MEDIA_URL",
]
