"""WeChat Official Account API client.

This module provides the main WeixinMPClient class that combines all API
functionality through mixins.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx

from ..core.config import WeixinMPConfig
from ..core.logger import get_logger
from .auth import CredentialCache
from .caller import ResilientCaller
from .media import WeixinMediaMixin
from .message import WeixinMessageMixin
from .qrcode import WeixinQRCodeMixin
from .token_store import FileTokenStore, TokenStore

logger = get_logger("api.client")


class WeixinMPClient(
    WeixinMessageMixin,
    WeixinMediaMixin,
    WeixinQRCodeMixin,
):
    """WeChat Official Account API client.

    Provides access to the platform's HTTP API including:
    - Access token management with automatic refresh
    - Active message sending and passive reply bodies
    - Media upload and download
    - QR code tickets

    Every remote call goes through one :class:`ResilientCaller`, which shares a
    single :class:`CredentialCache` between all concurrent callers.

    Example:
        ```python
        async with WeixinMPClient(app_id="wx...", app_secret="...") as api:
            await api.send_text("o_user_openid", "Hello!")

            media_id = await api.upload_media("image", "banner.png")
            await api.send_image("o_user_openid", media_id)
        ```
    """

    def __init__(
        self,
        app_id: str | None = None,
        app_secret: str | None = None,
        *,
        config: WeixinMPConfig | None = None,
        token_store: TokenStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the client.

        Args:
            app_id: Official account AppID (overrides ``config.app_id``).
            app_secret: Official account AppSecret (overrides ``config.app_secret``).
            config: Full configuration; built from the environment when omitted.
            token_store: Token persistence. Defaults to a FileTokenStore when
                ``config.token_cache_file`` is set.
            transport: Custom httpx transport (for testing or proxies).
            clock: Source of the current Unix time for token expiry.
        """
        if config is None:
            config = WeixinMPConfig()
        overrides = {
            key: value
            for key, value in (("app_id", app_id), ("app_secret", app_secret))
            if value is not None
        }
        if overrides:
            config = config.model_copy(update=overrides)
        config.require_credentials()

        self.config = config
        self.app_id = config.app_id
        self.api_base_url = config.api_base_url
        self.file_base_url = config.file_base_url
        self.timeout = config.timeout

        if token_store is None and config.token_cache_file:
            token_store = FileTokenStore(config.token_cache_file)

        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self.credentials = CredentialCache(
            config.app_id,
            config.app_secret,
            self._ensure_client,
            api_base_url=config.api_base_url,
            safety_margin=config.token_safety_margin,
            store=token_store,
            clock=clock,
        )
        self.caller = ResilientCaller(self.credentials, self._ensure_client, config.retry)

    async def __aenter__(self) -> WeixinMPClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
            logger.debug("WeixinMPClient connected")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("WeixinMPClient closed")

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            raise RuntimeError(
                "WeixinMPClient not connected. Use 'async with' or call connect() first."
            )
        return self._client

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token, fetching a new one if needed."""
        if force_refresh:
            self.credentials.invalidate()
        credential = await self.credentials.obtain()
        return credential.value


def create_client(config: WeixinMPConfig, **kwargs: Any) -> WeixinMPClient:
    """Factory function to create a client from configuration.

    Args:
        config: Loaded configuration.
        **kwargs: Forwarded to :class:`WeixinMPClient`.

    Returns:
        Configured WeixinMPClient instance.
    """
    return WeixinMPClient(config=config, **kwargs)
