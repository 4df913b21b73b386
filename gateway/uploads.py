from __future__ import annotations

import logging
import os
import uuid

from fastapi import UploadFile

from common.config import TranscriptionSettings
from common.errors import ValidationError

logger = logging.getLogger(__name__)

COPY_BLOCK_BYTES = 1024 * 1024


def validate_upload(content_type: str | None, size: int | None, settings: TranscriptionSettings) -> None:
    """Reject uploads outside the MIME allow-list or over the size cap.

    ``size`` may be None when the client did not announce it; the cap is then
    enforced while the upload is copied to disk.
    """
    if content_type not in settings.allowed_mime_types:
        raise ValidationError("Unsupported file type")
    if size is not None and size > settings.max_upload_bytes:
        raise ValidationError(_too_large(settings))


def _too_large(settings: TranscriptionSettings) -> str:
    return f"The file is too large. The maximum size is {settings.max_upload_mb}MB."


async def stage_upload(upload: UploadFile, settings: TranscriptionSettings) -> str:
    """Validate ``upload`` and copy it into the temp directory; return the path."""
    validate_upload(upload.content_type, upload.size, settings)

    os.makedirs(settings.temp_dir, exist_ok=True)
    safe_name = os.path.basename(upload.filename or "audio")
    path = os.path.join(settings.temp_dir, f"{uuid.uuid4()}_{safe_name}")

    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                block = await upload.read(COPY_BLOCK_BYTES)
                if not block:
                    break
                written += len(block)
                if written > settings.max_upload_bytes:
                    raise ValidationError(_too_large(settings))
                out.write(block)
    except BaseException:
        discard_upload(path)
        raise

    logger.info("Staged upload %s (%d bytes) at %s", safe_name, written, path)
    return path


def discard_upload(path: str | None) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not delete staged upload %s: %s", path, exc)
