"""Message API operations for WeChat Official Accounts.

This module provides both outbound message channels:
- Active send through ``message/custom/send`` (JSON body)
- Passive reply bodies for inbound webhook requests (XML body)
"""

from __future__ import annotations

import time
from collections.abc import Iterable

from ..core.logger import get_logger
from ..messages import (
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
from .caller import JsonPost, ResilientCaller

logger = get_logger("api.message")


class WeixinMessageMixin:
    """Mixin providing message functionality.

    This mixin should be used with a class that has:
    - self.api_base_url: str
    - self.caller: ResilientCaller
    """

    SEND_MESSAGE_PATH = "/message/custom/send"

    api_base_url: str
    caller: ResilientCaller

    async def send_message(self, touser: str, message: MessageVariant) -> None:
        """Send ``message`` to the follower ``touser``.

        Raises:
            SerializationError: If the message misses a required field.
            CallError: If the platform kept rejecting the request.
            CredentialFetchError: If no access token could be obtained.
        """
        body = build_envelope(
            message,
            EnvelopeContext(from_user="", to_user=touser, created_at=int(time.time())),
            EnvelopeMode.SEND,
        )
        await self.caller.call(
            JsonPost(self.api_base_url + self.SEND_MESSAGE_PATH, body, name="message/custom/send")
        )
        logger.info("Sent %s message", message.msg_type)

    async def send_text(self, touser: str, content: str) -> None:
        await self.send_message(touser, TextMessage(content))

    async def send_image(self, touser: str, media_id: str) -> None:
        await self.send_message(touser, ImageMessage(media_id))

    async def send_voice(self, touser: str, media_id: str) -> None:
        await self.send_message(touser, VoiceMessage(media_id))

    async def send_video(self, touser: str, video: VideoMessage) -> None:
        await self.send_message(touser, video)

    async def send_music(self, touser: str, music: MusicMessage) -> None:
        await self.send_message(touser, music)

    async def send_news(self, touser: str, articles: Iterable[Article]) -> None:
        await self.send_message(touser, NewsMessage(articles))

    def reply_message(self, request: InboundRequest, message: MessageVariant) -> bytes:
        """Build the XML body answering ``request`` with ``message``.

        The result is written by the webhook handler as its HTTP response.
        """
        return build_envelope(message, EnvelopeContext.for_reply(request), EnvelopeMode.REPLY)

    def reply_text(self, request: InboundRequest, content: str) -> bytes:
        return self.reply_message(request, TextMessage(content))

    def reply_image(self, request: InboundRequest, media_id: str) -> bytes:
        return self.reply_message(request, ImageMessage(media_id))

    def reply_voice(self, request: InboundRequest, media_id: str) -> bytes:
        return self.reply_message(request, VoiceMessage(media_id))

    def reply_video(self, request: InboundRequest, video: VideoMessage) -> bytes:
        return self.reply_message(request, video)

    def reply_music(self, request: InboundRequest, music: MusicMessage) -> bytes:
        return self.reply_message(request, music)

    def reply_news(self, request: InboundRequest, articles: Iterable[Article]) -> bytes:
        return self.reply_message(request, NewsMessage(articles))
