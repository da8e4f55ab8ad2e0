"""Local storage for uploaded message attachments.

Files arrive as data URLs (``data:<mime>;base64,<payload>``) or bare base64,
are written below ``settings.upload_dir`` and served from ``/uploads/<key>``.
"""

import base64
import binascii
import logging
import mimetypes
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from kleinewelt_models import Attachment
from kleinewelt.config import settings
from kleinewelt.services.errors import BadRequestError

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}
ALLOWED_MIME_PREFIXES = ("image/",)

_DATA_URL_PATTERN = re.compile(r"^data:([^;,]+);base64,(.*)$", re.IGNORECASE | re.DOTALL)


def _split_data_url(data: str) -> tuple[str | None, str | None]:
    """Return (mime_type, base64 payload) of a data URL or bare base64 string."""
    if not data:
        return None, None
    match = _DATA_URL_PATTERN.match(data)
    if match:
        return match.group(1), match.group(2)
    payload = data.split(",", 1)[1] if "," in data else data
    return None, payload


def _file_extension(original_name: str | None, fallback_extension: str = "") -> str:
    if original_name and "." in original_name:
        return original_name.rsplit(".", 1)[1].lower()
    return fallback_extension.lower()


def _resolve_mime_type(
    mime_from_payload: str | None, original_name: str | None, fallback_extension: str
) -> str:
    if mime_from_payload:
        return mime_from_payload.lower()
    extension = _file_extension(original_name, fallback_extension)
    guessed, _ = mimetypes.guess_type(f"file.{extension}") if extension else (None, None)
    return (guessed or "application/octet-stream").lower()


def _sanitize_folder(folder: str | None) -> str:
    if not folder:
        return ""
    segments = [s.strip() for s in folder.split("/")]
    return "/".join(s for s in segments if s and s not in (".", ".."))


def is_allowed_mime_type(mime_type: str) -> bool:
    return mime_type in ALLOWED_MIME_TYPES or mime_type.startswith(ALLOWED_MIME_PREFIXES)


def resolve_upload_path(key: str) -> Path:
    """Absolute path of a stored file.

    Raises:
        BadRequestError: If the key points outside the upload directory

    """
    root = settings.upload_dir.resolve()
    path = (root / key).resolve()
    if root not in path.parents:
        raise BadRequestError("Invalid file key.")
    return path


def extract_key(ref: Attachment | str | None) -> str | None:
    """Storage key of an attachment, key or ``/uploads/`` URL; None for foreign URLs."""
    if ref is None:
        return None
    if isinstance(ref, Attachment):
        if ref.key:
            return ref.key
        return extract_key(ref.url)
    if ref.startswith(UPLOAD_URL_PREFIX):
        return ref[len(UPLOAD_URL_PREFIX):]
    if "://" in ref or ref.startswith("/"):
        return None
    return ref


def store_data_url(
    data: str,
    original_name: str | None = None,
    folder: str | None = None,
    fallback_extension: str = "",
) -> Attachment | None:
    """Decode and store an uploaded file.

    Args:
        data: Data URL or bare base64 payload
        original_name: Declared file name, used for extension and display
        folder: Sub-folder below the upload directory
        fallback_extension: Extension used when the name has none

    Returns:
        The stored Attachment, or None when there is no payload

    Raises:
        BadRequestError: If the payload is not base64, the type is not
            allowed, or the file is too large

    """
    mime_from_payload, payload = _split_data_url(data)
    if not payload:
        return None

    mime_type = _resolve_mime_type(mime_from_payload, original_name, fallback_extension)
    if not is_allowed_mime_type(mime_type):
        raise BadRequestError("File type is not supported.")

    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequestError("File payload is not valid base64.") from None

    if len(content) > settings.upload_max_bytes:
        raise BadRequestError("File exceeds the maximum size.")

    extension = _file_extension(original_name, fallback_extension)
    file_name = f"{uuid.uuid4()}.{extension}" if extension else str(uuid.uuid4())
    sanitized_folder = _sanitize_folder(folder)
    key = f"{sanitized_folder}/{file_name}" if sanitized_folder else file_name

    target = resolve_upload_path(key)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    logger.info(f"Stored upload {key} ({len(content)} bytes)")

    return Attachment(
        key=key,
        url=f"{UPLOAD_URL_PREFIX}{key}",
        file_name=original_name or file_name,
        mime_type=mime_type,
        size=len(content),
        uploaded_at=datetime.now(timezone.utc),
    )


def remove_stored_file(ref: Attachment | str | None) -> bool:
    """Delete a stored file. Foreign URLs and missing files are ignored."""
    key = extract_key(ref)
    if not key:
        return False
    try:
        path = resolve_upload_path(key)
        path.unlink()
    except FileNotFoundError:
        logger.warning(f"Stored file already gone: {key}")
        return False
    except (OSError, BadRequestError) as e:
        logger.warning(f"Failed to remove stored file {key}: {e}")
        return False
    return True
