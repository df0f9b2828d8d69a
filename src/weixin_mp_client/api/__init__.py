"""WeChat Official Account API module.

Components:
- client.py: WeixinMPClient facade
- auth.py: Access token cache
- caller.py: Retrying call pipeline and operation descriptors
- message.py: Send and reply operations
- media.py: Media upload and download
- qrcode.py: QR code tickets
- token_store.py: Access token persistence
- models.py: Data models
"""

from .auth import CredentialCache
from .caller import (
    BinaryGet,
    JsonPost,
    MultipartPost,
    RemoteOperation,
    ResilientCaller,
)
from .client import WeixinMPClient, create_client
from .media import WeixinMediaMixin
from .message import WeixinMessageMixin
from .models import Credential, MediaKind, QRTicket, UploadedMedia
from .qrcode import WeixinQRCodeMixin, qrcode_url
from .token_store import FileTokenStore, TokenStore

__all__ = [
    # Main client
    "WeixinMPClient",
    "create_client",
    # Pipeline
    "CredentialCache",
    "ResilientCaller",
    "RemoteOperation",
    "JsonPost",
    "BinaryGet",
    "MultipartPost",
    # Persistence
    "TokenStore",
    "FileTokenStore",
    # Models
    "Credential",
    "MediaKind",
    "QRTicket",
    "UploadedMedia",
    "qrcode_url",
    # Mixins (for advanced usage)
    "WeixinMessageMixin",
    "WeixinMediaMixin",
    "WeixinQRCodeMixin",
]
