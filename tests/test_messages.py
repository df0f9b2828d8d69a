"""Tests for the messages module (variants and envelope serialization)."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET

import pytest

from weixin_mp_client.core.exceptions import SerializationError
from weixin_mp_client.messages import (
    Article,
    EnvelopeContext,
    EnvelopeMode,
    ImageMessage,
    InboundRequest,
    MusicMessage,
    NewsMessage,
    TextMessage,
    VideoMessage,
    VoiceMessage,
    build_envelope,
)

CONTEXT = EnvelopeContext(from_user="gh_account", to_user="o_follower", created_at=1700000000)

ARTICLES = [
    Article("First", "one", "https://example.com/1.jpg", "https://example.com/1"),
    Article("Second", "two", "https://example.com/2.jpg", "https://example.com/2"),
    Article("Third", "three", "https://example.com/3.jpg", "https://example.com/3"),
]

ALL_VARIANTS = [
    TextMessage("hello"),
    ImageMessage("IMG1"),
    VoiceMessage("VOICE1"),
    VideoMessage("VIDEO1", title="Clip", description="A clip"),
    MusicMessage(
        thumb_media_id="THUMB1",
        title="Song",
        description="A song",
        music_url="http://example.com/song.mp3",
        hq_music_url="http://example.com/song-hq.mp3",
    ),
    NewsMessage(ARTICLES),
]


def reply(variant) -> ET.Element:
    return ET.fromstring(build_envelope(variant, CONTEXT, EnvelopeMode.REPLY))


def send(variant) -> dict:
    return json.loads(build_envelope(variant, CONTEXT, EnvelopeMode.SEND))


class TestEnvelopeFields:
    """Sender, recipient and timestamp are bound the same way for every kind."""

    @pytest.mark.parametrize("variant", ALL_VARIANTS, ids=lambda v: v.msg_type)
    def test_reply_binds_context_once(self, variant) -> None:
        root = reply(variant)

        assert root.tag == "xml"
        for tag, expected in (
            ("ToUserName", "o_follower"),
            ("FromUserName", "gh_account"),
            ("CreateTime", "1700000000"),
            ("MsgType", variant.msg_type),
        ):
            matches = list(root.iter(tag))
            assert len(matches) == 1
            assert matches[0].text == expected

    @pytest.mark.parametrize("variant", ALL_VARIANTS, ids=lambda v: v.msg_type)
    def test_send_binds_recipient_once(self, variant) -> None:
        raw = build_envelope(variant, CONTEXT, EnvelopeMode.SEND).decode("utf-8")
        body = json.loads(raw)

        assert body["touser"] == "o_follower"
        assert body["msgtype"] == variant.msg_type
        assert raw.count('"touser"') == 1
        assert "gh_account" not in raw

    def test_variant_reused_for_several_recipients(self) -> None:
        message = TextMessage("broadcast")

        first = json.loads(build_envelope(message, EnvelopeContext("", "o_a"), "send"))
        second = json.loads(build_envelope(message, EnvelopeContext("", "o_b"), "send"))

        assert first["touser"] == "o_a"
        assert second["touser"] == "o_b"

    def test_reply_context_swaps_users(self) -> None:
        request = InboundRequest(from_user="o_follower", to_user="gh_account", msg_type="text")

        context = EnvelopeContext.for_reply(request, created_at=42)

        assert context == EnvelopeContext("gh_account", "o_follower", 42)


class TestReplyFormat:
    """XML bodies of the passive reply channel."""

    def test_text(self) -> None:
        root = reply(TextMessage("hi <there> & you"))

        assert root.findtext("Content") == "hi <there> & you"
        assert root.find("Text") is None

    def test_image_and_voice(self) -> None:
        assert reply(ImageMessage("IMG1")).findtext("Image/MediaId") == "IMG1"
        assert reply(VoiceMessage("VOICE1")).findtext("Voice/MediaId") == "VOICE1"

    def test_video(self) -> None:
        root = reply(VideoMessage("VIDEO1", title="Clip", description="A clip"))

        assert root.findtext("Video/MediaId") == "VIDEO1"
        assert root.findtext("Video/Title") == "Clip"
        assert root.findtext("Video/Description") == "A clip"

    def test_music(self) -> None:
        root = reply(ALL_VARIANTS[4])

        assert root.findtext("Music/Title") == "Song"
        assert root.findtext("Music/MusicUrl") == "http://example.com/song.mp3"
        assert root.findtext("Music/HQMusicUrl") == "http://example.com/song-hq.mp3"
        assert root.findtext("Music/ThumbMediaId") == "THUMB1"
        assert root.find("Music/MediaId") is None

    def test_news_article_count(self) -> None:
        root = reply(NewsMessage(ARTICLES))

        assert root.findtext("ArticleCount") == "3"
        items = root.findall("Articles/item")
        assert [item.findtext("Title") for item in items] == ["First", "Second", "Third"]
        assert items[0].findtext("PicUrl") == "https://example.com/1.jpg"
        assert items[0].findtext("Url") == "https://example.com/1"

    def test_no_xml_declaration(self) -> None:
        body = build_envelope(TextMessage("x"), CONTEXT, EnvelopeMode.REPLY)

        assert body.startswith(b"<xml>")


class TestSendFormat:
    """JSON bodies of the active send channel."""

    def test_text(self) -> None:
        body = send(TextMessage("你好"))

        assert body["text"] == {"content": "你好"}
        assert "Content" not in body

    def test_non_ascii_kept(self) -> None:
        raw = build_envelope(TextMessage("你好"), CONTEXT, EnvelopeMode.SEND)

        assert "你好".encode() in raw

    def test_image_and_voice(self) -> None:
        assert send(ImageMessage("IMG1"))["image"] == {"media_id": "IMG1"}
        assert send(VoiceMessage("VOICE1"))["voice"] == {"media_id": "VOICE1"}

    def test_video(self) -> None:
        assert send(ALL_VARIANTS[3])["video"] == {
            "media_id": "VIDEO1",
            "title": "Clip",
            "description": "A clip",
        }

    def test_music(self) -> None:
        assert send(ALL_VARIANTS[4])["music"] == {
            "title": "Song",
            "description": "A song",
            "musicurl": "http://example.com/song.mp3",
            "hqmusicurl": "http://example.com/song-hq.mp3",
            "thumb_media_id": "THUMB1",
        }

    def test_music_with_media_id(self) -> None:
        body = send(MusicMessage(thumb_media_id="THUMB1", media_id="MUSIC1"))

        assert body["music"]["media_id"] == "MUSIC1"

    def test_news_has_no_article_count(self) -> None:
        body = send(NewsMessage(ARTICLES))

        assert "ArticleCount" not in json.dumps(body)
        assert len(body["news"]["articles"]) == 3
        assert body["news"]["articles"][1] == {
            "title": "Second",
            "description": "two",
            "picurl": "https://example.com/2.jpg",
            "url": "https://example.com/2",
        }


class TestValidation:
    """Required fields per message kind."""

    @pytest.mark.parametrize(
        "variant",
        [
            TextMessage(""),
            ImageMessage(""),
            VoiceMessage(""),
            VideoMessage(""),
            MusicMessage(thumb_media_id=""),
            NewsMessage([]),
        ],
        ids=lambda v: v.msg_type,
    )
    @pytest.mark.parametrize("mode", list(EnvelopeMode))
    def test_missing_required_field(self, variant, mode) -> None:
        with pytest.raises(SerializationError) as exc_info:
            build_envelope(variant, CONTEXT, mode)

        assert exc_info.value.msg_type == variant.msg_type

    @pytest.mark.parametrize("char", ["\x00", "\x01", "\x0b", "\x0c", "\x1f"])
    def test_reply_rejects_xml_illegal_characters(self, char) -> None:
        with pytest.raises(SerializationError) as exc_info:
            build_envelope(TextMessage(f"hi{char}there"), CONTEXT, EnvelopeMode.REPLY)

        assert exc_info.value.msg_type == "text"

    def test_reply_rejects_illegal_characters_in_nested_fields(self) -> None:
        with pytest.raises(SerializationError, match="Title"):
            build_envelope(NewsMessage([Article("bad\x08title")]), CONTEXT, EnvelopeMode.REPLY)

    def test_reply_keeps_xml_whitespace(self) -> None:
        root = reply(TextMessage("line one\n\tline two\r"))

        assert root.findtext("Content").startswith("line one\n\tline two")

    def test_send_escapes_control_characters(self) -> None:
        assert send(TextMessage("hi\x01there"))["text"]["content"] == "hi\x01there"

    def test_send_requires_recipient(self) -> None:
        with pytest.raises(SerializationError, match="recipient"):
            build_envelope(TextMessage("x"), EnvelopeContext("gh", ""), EnvelopeMode.SEND)

    def test_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            build_envelope(TextMessage("x"), CONTEXT, "broadcast")

    def test_variants_are_immutable(self) -> None:
        message = NewsMessage(ARTICLES)

        assert isinstance(message.articles, tuple)
        with pytest.raises(AttributeError):
            message.articles = ()  # type: ignore[misc]
