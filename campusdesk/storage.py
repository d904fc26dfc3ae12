import logging
import time
from pathlib import Path
from typing import Dict

from .config import Settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES: Dict[str, str] = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


def check_upload_policy(mimetype: str, size: int, settings: Settings) -> None:
    """Reject an upload before anything touches the disk."""
    if mimetype not in ALLOWED_MIMETYPES:
        raise ValidationError("Please upload a PDF, JPEG, or PNG file")
    if size <= 0:
        raise ValidationError("Please upload a file")
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ValidationError(f"File size must be less than {limit_mb}MB")


def store_upload(content: bytes, mimetype: str, owner_id: str, settings: Settings) -> str:
    """Persist an already-checked upload and return its path relative to the upload dir."""
    extension = ALLOWED_MIMETYPES[mimetype]
    filename = f"doc_{owner_id}_{int(time.time() * 1000)}{extension}"
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    (upload_dir / filename).write_bytes(content)
    logger.info("Stored upload %s (%d bytes)", filename, len(content))
    return filename


def remove_upload(filename: str, settings: Settings) -> None:
    path = Path(settings.upload_dir) / filename
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Upload %s already removed", filename)
