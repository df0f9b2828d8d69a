"""Test configuration hooks."""

from __future__ import annotations

import os

import pytest

from tests.mocks import FakeClock
from weixin_mp_client.core.config import RetryPolicyConfig, WeixinMPConfig


# Configure anyio to only use asyncio backend (skip trio tests)
@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio to use only asyncio backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep WEIXIN_MP_* variables and stray .env files out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("WEIXIN_MP_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config() -> WeixinMPConfig:
    """Client configuration without backoff delays."""
    return WeixinMPConfig(
        app_id="wx_app",
        app_secret="wx_secret",
        retry=RetryPolicyConfig(max_attempts=3, backoff_seconds=0.0),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
