"""Access token management for the WeChat Official Account API.

This module handles:
- Fetching the access token from the ``token`` endpoint
- Caching it until shortly before expiry
- Collapsing concurrent refreshes into a single request
- Optional persistence through a :class:`~.token_store.TokenStore`
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import httpx

from ..core.config import DEFAULT_API_BASE_URL
from ..core.exceptions import CredentialFetchError
from ..core.logger import get_logger
from .models import Credential
from .token_store import TokenStore

logger = get_logger("api.auth")

DEFAULT_TOKEN_TTL = 7200


class CredentialCache:
    """Owns the lifecycle of the access token.

    ``obtain()`` returns the cached credential while it is valid and otherwise
    fetches a new one. Callers that arrive while a refresh is running await the
    same refresh task, so a burst of calls after expiry costs one request and
    every caller sees the same credential (or the same error).

    The refresh task is shielded from its awaiters: cancelling a caller does
    not cancel the fetch, and the cache is only written once a fetch has fully
    succeeded.
    """

    TOKEN_PATH = "/token"

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        client_getter: Callable[[], httpx.AsyncClient],
        *,
        api_base_url: str = DEFAULT_API_BASE_URL,
        safety_margin: float = 300.0,
        store: TokenStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            app_id: Official account AppID.
            app_secret: Official account AppSecret.
            client_getter: Returns the shared HTTP client.
            api_base_url: Base URL the ``/token`` path is appended to.
            safety_margin: Refresh this many seconds before the token expires.
            store: Optional persistence for the token between runs.
            clock: Source of the current Unix time.
        """
        self.app_id = app_id
        self.app_secret = app_secret
        self.token_url = api_base_url.rstrip("/") + self.TOKEN_PATH
        self.safety_margin = safety_margin

        self._client_getter = client_getter
        self._store = store
        self._store_loaded = store is None
        self._clock = clock
        self._credential: Credential | None = None
        self._refresh_task: asyncio.Future[Credential] | None = None

    @property
    def credential(self) -> Credential | None:
        """The currently cached credential, valid or not."""
        return self._credential

    def is_valid(self, credential: Credential | None) -> bool:
        return credential is not None and credential.is_valid(self._clock(), self.safety_margin)

    async def obtain(self) -> Credential:
        """Return a usable credential, refreshing it if needed.

        Raises:
            CredentialFetchError: If the token endpoint fails or rejects the request.
        """
        if not self._store_loaded:
            self._load_from_store()

        credential = self._credential
        if credential is not None and self.is_valid(credential):
            return credential

        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task
        return await asyncio.shield(task)

    def invalidate(self, credential: Credential | None = None) -> None:
        """Force the next ``obtain()`` to fetch a new token.

        Args:
            credential: The credential the platform rejected. When given, the
                cache is only cleared if it still holds that credential, so a
                late failure does not discard a token that was already renewed.
        """
        if credential is not None and credential is not self._credential:
            return
        if self._credential is not None:
            logger.debug("Access token invalidated")
        self._credential = None

    def _load_from_store(self) -> None:
        self._store_loaded = True
        if self._store is None:
            return
        persisted = self._store.load()
        if persisted is not None and self._credential is None:
            self._credential = persisted
            logger.debug("Loaded persisted access token")

    async def _refresh(self) -> Credential:
        logger.debug("Requesting new access_token")

        client = self._client_getter()
        try:
            response = await client.get(
                self.token_url,
                params={
                    "grant_type": "client_credential",
                    "appid": self.app_id,
                    "secret": self.app_secret,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise CredentialFetchError(str(exc) or type(exc).__name__, cause=exc) from exc
        except ValueError as exc:
            raise CredentialFetchError("Token endpoint returned invalid JSON", cause=exc) from exc

        if not isinstance(data, dict):
            raise CredentialFetchError(f"Unexpected token response: {data!r}")
        errcode = data.get("errcode", 0)
        if errcode:
            raise CredentialFetchError(data.get("errmsg", "Unknown error"), code=errcode)

        token = data.get("access_token")
        if not token:
            raise CredentialFetchError("Token endpoint response has no access_token")

        credential = Credential(
            value=token,
            obtained_at=self._clock(),
            ttl=float(data.get("expires_in", DEFAULT_TOKEN_TTL)),
        )
        self._credential = credential

        if self._store is not None:
            try:
                self._store.save(credential)
            except OSError as exc:
                logger.warning("Could not persist access token: %s", exc)

        logger.info("Obtained access_token (expires in %d seconds)", credential.ttl)
        return credential
