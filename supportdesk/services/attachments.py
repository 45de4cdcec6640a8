"""
Attachment uploads

One file per request. The content type must be on the allow list and the
body is streamed to disk in chunks so an oversize upload is cut off as soon
as it crosses the limit; partial files are removed on any rejection.
"""
import logging
import os
import re
import secrets
import time
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from supportdesk.config import settings
from supportdesk.security import ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

_DEFAULT_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "application/pdf": ".pdf",
}

_SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,8}$")


class AttachmentHandler:
    """Validates uploads and stores them under upload_dir"""

    def __init__(
        self,
        upload_dir: str,
        url_prefix: str,
        max_bytes: int,
        allowed_types: Iterable[str],
    ):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)

    def check_content_type(self, content_type: Optional[str]) -> str:
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in self.allowed_types:
            raise ValidationError(
                f"Unsupported file type: {content_type or 'unknown'}. "
                f"Allowed: {', '.join(sorted(self.allowed_types))}.",
                field="file",
            )
        return content_type

    def _too_large(self) -> ValidationError:
        return ValidationError(
            f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)} MB.",
            field="file",
        )

    def _stored_name(self, original_name: Optional[str], content_type: str) -> str:
        extension = Path(original_name or "").suffix.lower()
        if not _SAFE_EXTENSION.match(extension):
            extension = _DEFAULT_EXTENSIONS.get(content_type, "")
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"

    async def save(self, upload: Optional[UploadFile]) -> str:
        """
        Store an uploaded file

        Args:
            upload: File from the multipart "file" field

        Returns:
            Public reference of the stored file, e.g. "/uploads/1718000000000-42.png"

        Raises:
            ValidationError: No file, disallowed type, or larger than max_bytes
        """
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded.", field="file")

        content_type = self.check_content_type(upload.content_type)
        if upload.size is not None and upload.size > self.max_bytes:
            raise self._too_large()

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        name = self._stored_name(upload.filename, content_type)
        path = self.upload_dir / name

        written = 0
        out: BinaryIO = await run_in_threadpool(open, path, "wb")
        try:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_bytes:
                    raise self._too_large()
                await run_in_threadpool(out.write, chunk)
        except BaseException:
            out.close()
            _remove_quietly(path)
            raise
        out.close()

        logger.info(f"Stored attachment {name} ({written} bytes, {content_type})")
        return f"{self.url_prefix}/{name}"


def _remove_quietly(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def get_attachment_handler() -> AttachmentHandler:
    """FastAPI dependency built from settings"""
    return AttachmentHandler(
        upload_dir=settings.upload_dir,
        url_prefix=settings.upload_url_prefix,
        max_bytes=settings.upload_max_bytes,
        allowed_types=settings.upload_allowed_types,
    )
