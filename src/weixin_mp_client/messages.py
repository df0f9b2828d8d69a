"""Outbound message variants and their two wire formats.

A message is built from a variant (text, image, voice, video, music or news)
plus an :class:`EnvelopeContext` holding sender, recipient and timestamp. The
context is bound at build time, never stored on the variant, so one variant
value can be sent to any number of recipients.

Two serializations exist for the same logical fields:

- ``EnvelopeMode.REPLY``: XML body answering an inbound webhook request.
- ``EnvelopeMode.SEND``: JSON body for the ``message/custom/send`` endpoint.

Example:
    ```python
    from weixin_mp_client.messages import (
        EnvelopeContext,
        EnvelopeMode,
        TextMessage,
        build_envelope,
    )

    msg = TextMessage("Hello!")
    xml_body = build_envelope(msg, EnvelopeContext("gh_account", "o_user"), EnvelopeMode.REPLY)
    json_body = build_envelope(msg, EnvelopeContext("", "o_user"), EnvelopeMode.SEND)
    ```
"""

from __future__ import annotations

import json
import re
import time
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from .core.exceptions import SerializationError

# XML children: (tag, text) or (tag, nested children)
XmlNode = tuple[str, Union[str, int, list["XmlNode"]]]

# C0 control characters XML 1.0 cannot carry, even escaped
_XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class EnvelopeMode(str, Enum):
    """Outbound channel a message is serialized for."""

    REPLY = "reply"
    SEND = "send"


@dataclass(frozen=True)
class InboundRequest:
    """The parts of a parsed webhook request the reply path needs.

    Attributes:
        from_user: ``FromUserName`` of the inbound message (the follower).
        to_user: ``ToUserName`` of the inbound message (the official account).
        msg_type: Inbound ``MsgType``.
        event: Inbound ``Event`` for event pushes.
    """

    from_user: str
    to_user: str
    msg_type: str = ""
    event: str = ""


@dataclass(frozen=True)
class EnvelopeContext:
    """Sender, recipient and creation time bound into a message at build time."""

    from_user: str
    to_user: str
    created_at: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def for_reply(cls, request: InboundRequest, created_at: int | None = None) -> EnvelopeContext:
        """Context answering ``request``: sender and recipient swap roles."""
        return cls(
            from_user=request.to_user,
            to_user=request.from_user,
            created_at=int(time.time()) if created_at is None else created_at,
        )


class MessageVariant(ABC):
    """Base class of the six message kinds.

    Subclasses describe only their own payload; the envelope fields
    (recipient, sender, timestamp, kind) are bound here for every kind alike.
    """

    msg_type: ClassVar[str]
    required_fields: ClassVar[tuple[str, ...]] = ()

    def validate(self) -> None:
        """Raise :class:`SerializationError` if a required field is empty."""
        for name in self.required_fields:
            if not getattr(self, name):
                raise SerializationError(
                    f"{self.msg_type} message requires '{name}'", msg_type=self.msg_type
                )

    @abstractmethod
    def reply_body(self) -> list[XmlNode]:
        """XML children following ``MsgType`` in a passive reply."""

    @abstractmethod
    def send_body(self) -> dict[str, Any]:
        """JSON payload stored under the ``msgtype`` key of a send request."""

    def reply_fields(self, context: EnvelopeContext) -> list[XmlNode]:
        return [
            ("ToUserName", context.to_user),
            ("FromUserName", context.from_user),
            ("CreateTime", context.created_at),
            ("MsgType", self.msg_type),
            *self.reply_body(),
        ]

    def send_fields(self, context: EnvelopeContext) -> dict[str, Any]:
        return {
            "touser": context.to_user,
            "msgtype": self.msg_type,
            self.msg_type: self.send_body(),
        }


@dataclass(frozen=True)
class TextMessage(MessageVariant):
    content: str

    msg_type: ClassVar[str] = "text"
    required_fields: ClassVar[tuple[str, ...]] = ("content",)

    def reply_body(self) -> list[XmlNode]:
        return [("Content", self.content)]

    def send_body(self) -> dict[str, Any]:
        return {"content": self.content}


@dataclass(frozen=True)
class ImageMessage(MessageVariant):
    media_id: str

    msg_type: ClassVar[str] = "image"
    required_fields: ClassVar[tuple[str, ...]] = ("media_id",)

    def reply_body(self) -> list[XmlNode]:
        return [("Image", [("MediaId", self.media_id)])]

    def send_body(self) -> dict[str, Any]:
        return {"media_id": self.media_id}


@dataclass(frozen=True)
class VoiceMessage(MessageVariant):
    media_id: str

    msg_type: ClassVar[str] = "voice"
    required_fields: ClassVar[tuple[str, ...]] = ("media_id",)

    def reply_body(self) -> list[XmlNode]:
        return [("Voice", [("MediaId", self.media_id)])]

    def send_body(self) -> dict[str, Any]:
        return {"media_id": self.media_id}


@dataclass(frozen=True)
class VideoMessage(MessageVariant):
    media_id: str
    title: str = ""
    description: str = ""

    msg_type: ClassVar[str] = "video"
    required_fields: ClassVar[tuple[str, ...]] = ("media_id",)

    def reply_body(self) -> list[XmlNode]:
        return [
            (
                "Video",
                [
                    ("MediaId", self.media_id),
                    ("Title", self.title),
                    ("Description", self.description),
                ],
            )
        ]

    def send_body(self) -> dict[str, Any]:
        return {
            "media_id": self.media_id,
            "title": self.title,
            "description": self.description,
        }


@dataclass(frozen=True)
class MusicMessage(MessageVariant):
    thumb_media_id: str
    title: str = ""
    description: str = ""
    music_url: str = ""
    hq_music_url: str = ""
    media_id: str = ""

    msg_type: ClassVar[str] = "music"
    required_fields: ClassVar[tuple[str, ...]] = ("thumb_media_id",)

    def reply_body(self) -> list[XmlNode]:
        children: list[XmlNode] = [
            ("Title", self.title),
            ("Description", self.description),
            ("MusicUrl", self.music_url),
            ("HQMusicUrl", self.hq_music_url),
            ("ThumbMediaId", self.thumb_media_id),
        ]
        if self.media_id:
            children.append(("MediaId", self.media_id))
        return [("Music", children)]

    def send_body(self) -> dict[str, Any]:
        body = {
            "title": self.title,
            "description": self.description,
            "musicurl": self.music_url,
            "hqmusicurl": self.hq_music_url,
            "thumb_media_id": self.thumb_media_id,
        }
        if self.media_id:
            body["media_id"] = self.media_id
        return body


@dataclass(frozen=True)
class Article:
    """One entry of a news message."""

    title: str
    description: str = ""
    pic_url: str = ""
    url: str = ""


@dataclass(frozen=True)
class NewsMessage(MessageVariant):
    """Article list; the platform, not the client, limits how many are allowed."""

    articles: tuple[Article, ...]

    msg_type: ClassVar[str] = "news"
    required_fields: ClassVar[tuple[str, ...]] = ("articles",)

    def __init__(self, articles: Iterable[Article]) -> None:
        object.__setattr__(self, "articles", tuple(articles))

    def reply_body(self) -> list[XmlNode]:
        items: list[XmlNode] = [
            (
                "item",
                [
                    ("Title", article.title),
                    ("Description", article.description),
                    ("PicUrl", article.pic_url),
                    ("Url", article.url),
                ],
            )
            for article in self.articles
        ]
        return [("ArticleCount", len(self.articles)), ("Articles", items)]

    def send_body(self) -> dict[str, Any]:
        return {
            "articles": [
                {
                    "title": article.title,
                    "description": article.description,
                    "picurl": article.pic_url,
                    "url": article.url,
                }
                for article in self.articles
            ]
        }


def _append_nodes(parent: ET.Element, nodes: list[XmlNode], msg_type: str) -> None:
    for tag, value in nodes:
        child = ET.SubElement(parent, tag)
        if isinstance(value, list):
            _append_nodes(child, value, msg_type)
            continue
        text = str(value)
        if _XML_ILLEGAL_CHARS.search(text):
            raise SerializationError(
                f"{msg_type} message field {tag} contains characters not allowed in XML",
                msg_type=msg_type,
            )
        child.text = text


def build_envelope(
    variant: MessageVariant,
    context: EnvelopeContext,
    mode: EnvelopeMode | str,
) -> bytes:
    """Serialize ``variant`` with ``context`` bound in for the given channel.

    Args:
        variant: The message payload.
        context: Sender, recipient and timestamp.
        mode: ``EnvelopeMode.REPLY`` for the XML reply body,
            ``EnvelopeMode.SEND`` for the JSON send body.

    Returns:
        UTF-8 encoded body.

    Raises:
        SerializationError: If the variant misses a required field, or a reply
            field holds a control character XML cannot represent.
    """
    mode = EnvelopeMode(mode)
    variant.validate()

    if mode is EnvelopeMode.REPLY:
        root = ET.Element("xml")
        _append_nodes(root, variant.reply_fields(context), variant.msg_type)
        return ET.tostring(root, encoding="unicode").encode("utf-8")

    if not context.to_user:
        raise SerializationError("send requires a recipient", msg_type=variant.msg_type)
    return json.dumps(variant.send_fields(context), ensure_ascii=False).encode("utf-8")
