"""Core modules for the WeChat Official Account client.

This package contains the ambient functionality:
- Configuration management
- Logging utilities
- Exception hierarchy
"""

from .config import LoggingConfig, RetryPolicyConfig, WeixinMPConfig, load_config
from .exceptions import (
    CallError,
    CredentialFetchError,
    RemoteAPIError,
    SerializationError,
    TransferError,
    WeixinMPError,
)
from .logger import get_logger, setup_logging

__all__ = [
    # Configuration
    "LoggingConfig",
    "RetryPolicyConfig",
    "WeixinMPConfig",
    "load_config",
    # Errors
    "WeixinMPError",
    "RemoteAPIError",
    "CredentialFetchError",
    "CallError",
    "SerializationError",
    "TransferError",
    # Logging
    "get_logger",
    "setup_logging",
]
