"""Retrying call pipeline shared by every remote operation.

A remote operation is described by one of three descriptors:

- :class:`JsonPost` for JSON RPC style calls
- :class:`BinaryGet` for media downloads
- :class:`MultipartPost` for media uploads

:class:`ResilientCaller` runs any of them with the same attempt budget,
attaching a fresh access token to every attempt and classifying the outcome.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, BinaryIO

import httpx

from ..core.config import RetryPolicyConfig
from ..core.exceptions import CallError, CredentialFetchError, RemoteAPIError, TransferError
from ..core.logger import get_logger
from .auth import CredentialCache
from .models import Credential

logger = get_logger("api.caller")

# invalid credential, invalid access_token, missing access_token, access_token expired
TOKEN_ERROR_CODES = frozenset({40001, 40014, 41001, 42001})

TEXTUAL_CONTENT_TYPES = ("text/", "application/json")


class RemoteOperation(ABC):
    """Description of one HTTP exchange, replayable once per attempt."""

    name: str
    url: str
    params: dict[str, Any]
    expects_binary: bool = False
    # a successful JSON body must carry a non-empty value under one of these keys
    result_keys: tuple[str, ...] = ()

    @abstractmethod
    async def send(self, client: httpx.AsyncClient, params: dict[str, Any]) -> httpx.Response:
        """Perform the request with ``params`` as the query string."""


@dataclass
class JsonPost(RemoteOperation):
    """POST a JSON body and expect a JSON response envelope."""

    url: str
    body: bytes | dict[str, Any]
    name: str = "json_post"
    params: dict[str, Any] = field(default_factory=dict)
    result_keys: tuple[str, ...] = ()

    def encoded_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return json.dumps(self.body, ensure_ascii=False).encode("utf-8")

    async def send(self, client: httpx.AsyncClient, params: dict[str, Any]) -> httpx.Response:
        return await client.post(
            self.url,
            params=params,
            content=self.encoded_body(),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )


@dataclass
class BinaryGet(RemoteOperation):
    """GET a binary payload; a textual response is an error envelope."""

    url: str
    params: dict[str, Any] = field(default_factory=dict)
    name: str = "binary_get"
    expects_binary: bool = True

    async def send(self, client: httpx.AsyncClient, params: dict[str, Any]) -> httpx.Response:
        return await client.get(self.url, params=params)


@dataclass
class MultipartPost(RemoteOperation):
    """POST a file as ``multipart/form-data`` and expect a JSON response.

    A seekable stream positioned at its start is re-read from the start on
    every attempt. Any other stream (a pipe, or one already advanced) is read
    once from its current position and the bytes are resent on retries.
    Local read failures raise :class:`TransferError`, which is never retried.
    """

    url: str
    stream: BinaryIO
    filename: str
    params: dict[str, Any] = field(default_factory=dict)
    field_name: str = "media"
    content_type: str = "application/octet-stream"
    name: str = "multipart_post"
    result_keys: tuple[str, ...] = ()
    _payload: BinaryIO | bytes | None = field(default=None, init=False, repr=False)

    def payload(self) -> BinaryIO | bytes:
        """Return what the next attempt uploads, rewound to the upload start."""
        try:
            if self._payload is None:
                seekable = getattr(self.stream, "seekable", lambda: False)()
                if seekable and self.stream.tell() == 0:
                    self._payload = self.stream
                else:
                    self._payload = self.stream.read()
            if not isinstance(self._payload, bytes):
                self._payload.seek(0)
        except OSError as exc:
            raise self._transfer_error(exc) from exc
        return self._payload

    async def send(self, client: httpx.AsyncClient, params: dict[str, Any]) -> httpx.Response:
        payload = self.payload()
        try:
            return await client.post(
                self.url,
                params=params,
                files={self.field_name: (self.filename, payload, self.content_type)},
            )
        except OSError as exc:
            # httpx reads the file while sending; transport failures are httpx errors
            raise self._transfer_error(exc) from exc

    def _transfer_error(self, exc: OSError) -> TransferError:
        return TransferError(
            f"Cannot read upload stream {self.filename}: {exc}", path=self.filename, cause=exc
        )


def is_textual(response: httpx.Response) -> bool:
    content_type = response.headers.get("Content-Type", "").lower()
    return content_type.startswith(TEXTUAL_CONTENT_TYPES)


def check_envelope(data: Any) -> None:
    """Raise :class:`RemoteAPIError` if a decoded response carries ``errcode != 0``."""
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected response payload: {data!r}")
    errcode = data.get("errcode", 0)
    if errcode:
        raise RemoteAPIError(int(errcode), str(data.get("errmsg", "")))


class ResilientCaller:
    """Run remote operations with bounded retry and token refresh.

    Each attempt obtains a credential, performs the operation and classifies
    the result. Transport errors, non-2xx statuses, undecodable bodies and
    non-zero ``errcode`` envelopes are retried; token-related error codes also
    invalidate the cached credential first. When the budget is exhausted a
    :class:`CallError` carrying the last cause is raised; a token fetch that
    fails on the final attempt surfaces as :class:`CredentialFetchError`.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        client_getter: Callable[[], httpx.AsyncClient],
        retry_policy: RetryPolicyConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicyConfig()
        self._client_getter = client_getter
        self._sleep = sleep

    async def call(
        self, operation: RemoteOperation, max_attempts: int | None = None
    ) -> httpx.Response:
        """Run ``operation`` until it succeeds or the attempt budget is spent.

        Args:
            operation: The request to perform.
            max_attempts: Overrides ``retry_policy.max_attempts`` for this call.

        Returns:
            The successful HTTP response.

        Raises:
            CallError: If every attempt failed.
            CredentialFetchError: If the token could not be fetched on the last attempt.
        """
        policy = self.retry_policy
        attempts = policy.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        delay = policy.backoff_seconds
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            credential: Credential | None = None
            try:
                credential = await self.credentials.obtain()
                return await self._attempt(operation, credential)
            except CredentialFetchError as exc:
                if attempt == attempts:
                    logger.error(
                        "%s: could not obtain access token after %d attempts: %s",
                        operation.name,
                        attempts,
                        exc,
                    )
                    raise
                last_error = exc
            except RemoteAPIError as exc:
                last_error = exc
                if exc.code in TOKEN_ERROR_CODES:
                    self.credentials.invalidate(credential)
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc

            if attempt < attempts:
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                    operation.name,
                    attempt,
                    attempts,
                    last_error,
                    delay,
                )
                if delay > 0:
                    await self._sleep(delay)
                delay = min(delay * policy.backoff_multiplier, policy.max_backoff_seconds)

        if last_error is None:
            raise RuntimeError("Unexpected retry loop exit")
        logger.error("%s failed after %d attempts: %s", operation.name, attempts, last_error)
        raise CallError(operation.name, attempts, last_error) from last_error

    async def call_json(
        self, operation: RemoteOperation, max_attempts: int | None = None
    ) -> dict[str, Any]:
        """Like :meth:`call` but return the decoded JSON body."""
        response = await self.call(operation, max_attempts)
        return response.json()

    async def _attempt(self, operation: RemoteOperation, credential: Credential) -> httpx.Response:
        client = self._client_getter()
        params = {**operation.params, "access_token": credential.value}

        response = await operation.send(client, params)
        response.raise_for_status()

        if operation.expects_binary:
            if is_textual(response):
                data = response.json()
                check_envelope(data)
                raise ValueError(
                    f"Expected binary content, got {response.headers.get('Content-Type')}"
                )
            return response

        data = response.json()
        check_envelope(data)
        if operation.result_keys and not any(data.get(key) for key in operation.result_keys):
            raise ValueError(
                f"Response lacks {' or '.join(operation.result_keys)}: {response.text[:200]}"
            )
        return response
