"""Parametric QR code tickets."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from ..core.logger import get_logger
from .caller import JsonPost, ResilientCaller
from .models import QRTicket

logger = get_logger("api.qrcode")

SHOW_QRCODE_URL = "https://mp.weixin.qq.com/cgi-bin/showqrcode"


def qrcode_url(ticket: str) -> str:
    """URL of the QR code image for ``ticket``."""
    return f"{SHOW_QRCODE_URL}?ticket={quote(ticket, safe='')}"


class WeixinQRCodeMixin:
    """Mixin issuing QR code tickets.

    This mixin should be used with a class that has:
    - self.api_base_url: str
    - self.caller: ResilientCaller
    """

    CREATE_QRCODE_PATH = "/qrcode/create"

    api_base_url: str
    caller: ResilientCaller

    async def create_temporary_qrcode(self, scene_id: int, expire_seconds: int) -> QRTicket:
        """Create a temporary (``QR_SCENE``) code valid for ``expire_seconds``."""
        return await self._create_qrcode(
            {
                "expire_seconds": expire_seconds,
                "action_name": "QR_SCENE",
                "action_info": {"scene": {"scene_id": scene_id}},
            }
        )

    async def create_permanent_qrcode(self, scene_id: int) -> QRTicket:
        """Create a permanent (``QR_LIMIT_SCENE``) code."""
        return await self._create_qrcode(
            {
                "action_name": "QR_LIMIT_SCENE",
                "action_info": {"scene": {"scene_id": scene_id}},
            }
        )

    def qrcode_url(self, ticket: str) -> str:
        return qrcode_url(ticket)

    async def _create_qrcode(self, scene: dict[str, Any]) -> QRTicket:
        data = await self.caller.call_json(
            JsonPost(
                self.api_base_url + self.CREATE_QRCODE_PATH,
                scene,
                name="qrcode/create",
                result_keys=("ticket",),
            )
        )
        ticket = QRTicket(
            ticket=data.get("ticket", ""),
            expire_seconds=int(data.get("expire_seconds", 0)),
            url=data.get("url", ""),
        )
        logger.info("QR code ticket issued (%s)", scene["action_name"])
        return ticket
