"""Exception hierarchy for the WeChat Official Account client."""

from __future__ import annotations

from pathlib import Path


class WeixinMPError(Exception):
    """Base exception for all client errors."""

    pass


class RemoteAPIError(WeixinMPError):
    """Error envelope (``{"errcode": ..., "errmsg": ...}``) returned by the platform.

    Attributes:
        code: Platform error code (never 0).
        message: Platform error message.
    """

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"WeChat API error {code}: {message}")


class CredentialFetchError(WeixinMPError):
    """Raised when the access token endpoint is unreachable or rejects the request."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            code: Platform error code, when the token endpoint returned one
            cause: Underlying transport or decode error
        """
        self.code = code
        self.message = message
        self.cause = cause
        if code is not None:
            super().__init__(f"Failed to fetch access token ({code}): {message}")
        else:
            super().__init__(f"Failed to fetch access token: {message}")


class CallError(WeixinMPError):
    """Raised when a remote operation failed on every attempt.

    The last observed failure is kept in ``cause`` and chained as ``__cause__``.
    """

    def __init__(self, operation: str, attempts: int, cause: BaseException) -> None:
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{operation} failed after {attempts} attempt(s): {cause}")

    @property
    def code(self) -> int | None:
        """Platform error code of the last failure, if it was a remote error."""
        return getattr(self.cause, "code", None)

    @property
    def message(self) -> str:
        """Message of the last failure."""
        if isinstance(self.cause, RemoteAPIError):
            return self.cause.message
        return str(self.cause)


class SerializationError(WeixinMPError):
    """Raised when a message variant lacks the fields its kind requires."""

    def __init__(self, message: str, msg_type: str | None = None) -> None:
        self.msg_type = msg_type
        super().__init__(message)


class TransferError(WeixinMPError):
    """Raised on local file I/O failure during a media upload or download."""

    def __init__(
        self,
        message: str,
        path: str | Path | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(message)
