"""WeChat Official Account API client.

An async client for the weixin mp HTTP API with:
- Access token caching with single-flight refresh
- Bounded retry for every remote call
- Text, image, voice, video, music and news messages (XML reply and JSON send)
- Media upload and download
- QR code tickets

Example:
    ```python
    from weixin_mp_client import WeixinMPClient

    async with WeixinMPClient(app_id="wx...", app_secret="...") as api:
        await api.send_text("o_user_openid", "Hello!")
    ```
"""

from importlib.metadata import PackageNotFoundError, version

from .api import (
    Credential,
    CredentialCache,
    FileTokenStore,
    MediaKind,
    QRTicket,
    ResilientCaller,
    UploadedMedia,
    WeixinMPClient,
    create_client,
    qrcode_url,
)
from .core import (
    CallError,
    CredentialFetchError,
    RemoteAPIError,
    SerializationError,
    TransferError,
    WeixinMPConfig,
    WeixinMPError,
    get_logger,
    load_config,
    setup_logging,
)
from .messages import (
    Article,
    EnvelopeContext,
    EnvelopeMode,
    ImageMessage,
    InboundRequest,
    MessageVariant,
    MusicMessage,
    NewsMessage,
    TextMessage,
    VideoMessage,
    VoiceMessage,
    build_envelope,
)

try:
    __version__ = version("weixin-mp-client")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    # Client
    "WeixinMPClient",
    "create_client",
    "CredentialCache",
    "ResilientCaller",
    "FileTokenStore",
    "Credential",
    "MediaKind",
    "QRTicket",
    "UploadedMedia",
    "qrcode_url",
    # Messages
    "MessageVariant",
    "TextMessage",
    "ImageMessage",
    "VoiceMessage",
    "VideoMessage",
    "MusicMessage",
    "NewsMessage",
    "Article",
    "EnvelopeContext",
    "EnvelopeMode",
    "InboundRequest",
    "build_envelope",
    # Configuration and logging
    "WeixinMPConfig",
    "load_config",
    "get_logger",
    "setup_logging",
    # Errors
    "WeixinMPError",
    "RemoteAPIError",
    "CredentialFetchError",
    "CallError",
    "SerializationError",
    "TransferError",
]
