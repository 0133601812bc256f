"""Screenshot uploads attached to refund and return requests."""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path

import structlog
from fastapi import UploadFile

from dropit.domain.errors import ValidationError

logger = structlog.get_logger()

UPLOADS_URL_PREFIX = "/uploads"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    """Reduce an uploaded file name to a safe basename."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "upload"


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes // (1024 * 1024)} MB"
    return f"{num_bytes} bytes"


async def save_upload(upload: UploadFile, upload_dir: Path, max_bytes: int) -> str:
    """Store *upload* as ``<epoch-ms>-<name>`` and return its public URL path.

    Raises:
        ValidationError: If the file is larger than *max_bytes*.
    """
    content = await upload.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise ValidationError(f"Screenshot must be at most {_format_size(max_bytes)}")

    stored_name = f"{int(time.time() * 1000)}-{sanitize_filename(upload.filename or '')}"
    destination = upload_dir / stored_name

    await asyncio.to_thread(upload_dir.mkdir, parents=True, exist_ok=True)
    await asyncio.to_thread(destination.write_bytes, content)
    logger.info("Screenshot stored", filename=stored_name, size=len(content))
    return f"{UPLOADS_URL_PREFIX}/{stored_name}"


async def discard_upload(attachment_ref: str, upload_dir: Path) -> None:
    """Delete a stored screenshot whose request was rejected."""
    destination = upload_dir / attachment_ref.removeprefix(f"{UPLOADS_URL_PREFIX}/")
    await asyncio.to_thread(destination.unlink, missing_ok=True)
    logger.info("Screenshot discarded", filename=destination.name)
