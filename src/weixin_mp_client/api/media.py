"""Media upload and download for WeChat Official Accounts.

Uploads post the file as ``multipart/form-data``; downloads never touch the
destination unless the platform answered with binary content.
"""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from ..core.exceptions import TransferError
from ..core.logger import get_logger
from .caller import BinaryGet, MultipartPost, ResilientCaller
from .models import MediaKind, UploadedMedia

logger = get_logger("api.media")


@contextmanager
def _open_source(file: str | Path | BinaryIO) -> Iterator[tuple[BinaryIO, str]]:
    if isinstance(file, (str, Path)):
        path = Path(file)
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise TransferError(f"Cannot open {path}: {exc}", path=path, cause=exc) from exc
        with handle:
            yield handle, path.name
    else:
        yield file, Path(str(getattr(file, "name", "") or "media")).name


def _file_mode(destination: Path) -> int:
    """Mode a plain open() would give the file, or the mode of the file it replaces."""
    try:
        return stat.S_IMODE(destination.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _write_atomically(destination: Path, content: bytes) -> None:
    directory = destination.parent
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}-", dir=directory)
    except OSError as exc:
        raise TransferError(
            f"Cannot create {destination}: {exc}", path=destination, cause=exc
        ) from exc

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        # mkstemp creates the file as 0600
        os.chmod(tmp_name, _file_mode(destination))
        os.replace(tmp_name, destination)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise TransferError(
            f"Cannot write {destination}: {exc}", path=destination, cause=exc
        ) from exc
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class WeixinMediaMixin:
    """Mixin providing media functionality.

    This mixin should be used with a class that has:
    - self.file_base_url: str
    - self.caller: ResilientCaller
    """

    UPLOAD_MEDIA_PATH = "/media/upload"
    GET_MEDIA_PATH = "/media/get"

    file_base_url: str
    caller: ResilientCaller

    async def upload_media_info(
        self, kind: MediaKind | str, file: str | Path | BinaryIO
    ) -> UploadedMedia:
        """Upload a temporary media file.

        Args:
            kind: Media category (image, voice, video, thumb).
            file: Local path or readable binary stream.

        Returns:
            UploadedMedia with the platform's media id.

        Raises:
            TransferError: If the local file cannot be opened.
            CallError: If the upload kept failing.
        """
        kind = MediaKind(kind)
        with _open_source(file) as (stream, filename):
            response = await self.caller.call(
                MultipartPost(
                    self.file_base_url + self.UPLOAD_MEDIA_PATH,
                    stream=stream,
                    filename=filename,
                    params={"type": kind.value},
                    name="media/upload",
                    result_keys=("media_id", "thumb_media_id"),
                )
            )

        media = UploadedMedia.from_response(response.json())
        logger.info("Media uploaded: %s (%s)", media.media_id, media.type)
        return media

    async def upload_media(self, kind: MediaKind | str, file: str | Path | BinaryIO) -> str:
        """Upload a temporary media file and return its media id."""
        media = await self.upload_media_info(kind, file)
        return media.media_id

    async def download_media(self, media_id: str, destination: str | Path | BinaryIO) -> int:
        """Download media ``media_id`` into ``destination``.

        Paths are written through a temporary file that only replaces the
        destination once the whole body has arrived. Streams receive the body
        only after the download succeeded.

        Returns:
            Number of bytes written.

        Raises:
            CallError: If the platform answered with an error envelope on every attempt.
            TransferError: If the destination cannot be written.
        """
        response = await self.caller.call(
            BinaryGet(
                self.file_base_url + self.GET_MEDIA_PATH,
                params={"media_id": media_id},
                name="media/get",
            )
        )
        content = response.content

        if isinstance(destination, (str, Path)):
            _write_atomically(Path(destination), content)
        else:
            try:
                destination.write(content)
            except OSError as exc:
                raise TransferError(f"Cannot write media {media_id}: {exc}", cause=exc) from exc

        logger.info("Media downloaded: %s (%d bytes)", media_id, len(content))
        return len(content)
