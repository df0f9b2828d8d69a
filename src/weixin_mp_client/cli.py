"""Command-line interface for the WeChat Official Account client."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape

from . import __version__
from .api import WeixinMPClient
from .api.models import MediaKind
from .core import WeixinMPConfig, WeixinMPError, get_logger, load_config, setup_logging

logger = get_logger("cli")

console = Console()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns:
        ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="weixin-mp",
        description="WeChat Official Account API client",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Path to YAML configuration file")
    parser.add_argument("--app-id", help="Official account AppID (overrides config)")
    parser.add_argument("--app-secret", help="Official account AppSecret (overrides config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    token_parser = subparsers.add_parser("token", help="Fetch and print the access token")
    token_parser.add_argument(
        "--refresh", action="store_true", help="Ignore the cached token and fetch a new one"
    )

    send_parser = subparsers.add_parser("send-text", help="Send a text message to a follower")
    send_parser.add_argument("touser", help="Recipient OpenID")
    send_parser.add_argument("content", help="Message text")

    upload_parser = subparsers.add_parser("upload", help="Upload a temporary media file")
    upload_parser.add_argument("kind", choices=[kind.value for kind in MediaKind])
    upload_parser.add_argument("file", help="Path of the file to upload")

    download_parser = subparsers.add_parser("download", help="Download a media file")
    download_parser.add_argument("media_id", help="Media id to download")
    download_parser.add_argument("output", help="Destination path")

    qrcode_parser = subparsers.add_parser("qrcode", help="Create a QR code ticket")
    qrcode_parser.add_argument("scene_id", type=int, help="Scene id encoded in the code")
    qrcode_parser.add_argument(
        "--expire",
        type=int,
        default=None,
        help="Create a temporary code valid for this many seconds (permanent if omitted)",
    )

    return parser


def _load_config(args: argparse.Namespace) -> WeixinMPConfig:
    config = load_config(args.config)
    overrides = {
        key: value
        for key, value in (("app_id", args.app_id), ("app_secret", args.app_secret))
        if value
    }
    if overrides:
        config = config.model_copy(update=overrides)
    if args.debug:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"level": "DEBUG"})}
        )
    return config


def _run(
    args: argparse.Namespace, action: Callable[[WeixinMPClient], Awaitable[Any]]
) -> int:
    try:
        config = _load_config(args)
        setup_logging(config.logging)
        client = WeixinMPClient(config=config)
    except (ValueError, FileNotFoundError) as exc:
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 1

    async def runner() -> Any:
        async with client:
            return await action(client)

    try:
        asyncio.run(runner())
    except WeixinMPError as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 1
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    """Print a valid access token."""

    async def action(client: WeixinMPClient) -> None:
        token = await client.get_access_token(force_refresh=args.refresh)
        console.print(token)

    return _run(args, action)


def cmd_send_text(args: argparse.Namespace) -> int:
    """Send a text message."""

    async def action(client: WeixinMPClient) -> None:
        await client.send_text(args.touser, args.content)
        console.print(f"[green]Message sent to[/] {args.touser}")

    return _run(args, action)


def cmd_upload(args: argparse.Namespace) -> int:
    """Upload a media file and print its media id."""
    file_path = Path(args.file)
    if not file_path.is_file():
        console.print(f"[red]Error:[/] File not found: {file_path}")
        return 1

    async def action(client: WeixinMPClient) -> None:
        media_id = await client.upload_media(args.kind, file_path)
        console.print(f"[green]Media uploaded![/] media_id: {media_id}")

    return _run(args, action)


def cmd_download(args: argparse.Namespace) -> int:
    """Download a media file."""

    async def action(client: WeixinMPClient) -> None:
        size = await client.download_media(args.media_id, args.output)
        console.print(f"[green]Saved[/] {size} bytes to {args.output}")

    return _run(args, action)


def cmd_qrcode(args: argparse.Namespace) -> int:
    """Create a QR code ticket and print the image URL."""

    async def action(client: WeixinMPClient) -> None:
        if args.expire:
            ticket = await client.create_temporary_qrcode(args.scene_id, args.expire)
        else:
            ticket = await client.create_permanent_qrcode(args.scene_id)
        console.print(f"[bold]Ticket:[/] {ticket.ticket}")
        if ticket.expire_seconds:
            console.print(f"[bold]Expires in:[/] {ticket.expire_seconds}s")
        console.print(f"[bold]Image:[/] {client.qrcode_url(ticket.ticket)}")

    return _run(args, action)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Optional sequence of CLI arguments (without the program name).

    Returns:
        Process exit code. 0 for success.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    handlers = {
        "token": cmd_token,
        "send-text": cmd_send_text,
        "upload": cmd_upload,
        "download": cmd_download,
        "qrcode": cmd_qrcode,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main())
