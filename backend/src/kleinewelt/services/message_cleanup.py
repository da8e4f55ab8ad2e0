"""Removal of expired image attachments from messages.

Images shared in chats are only kept for a retention window. Other
attachments (documents) are left untouched.
"""

import logging
from datetime import datetime, timedelta, timezone

from kleinewelt_models import Attachment, Message, has_content
from kleinewelt.db import db
from kleinewelt.services.file_storage import remove_stored_file

logger = logging.getLogger(__name__)

IMAGE_MIME_PREFIX = "image/"
IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "heic", "heif", "bmp", "tiff"}
EXPIRED_ATTACHMENT_NOTICE = "Attachment expired."


def is_image_attachment(attachment: Attachment | None) -> bool:
    if attachment is None:
        return False
    if attachment.mime_type and attachment.mime_type.lower().startswith(IMAGE_MIME_PREFIX):
        return True
    file_name = attachment.file_name or attachment.key or ""
    extension = file_name.rsplit(".", 1)[1].lower() if "." in file_name else ""
    return extension in IMAGE_EXTENSIONS


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _split_expired(message: Message, cutoff: datetime) -> tuple[list[Attachment], list[Attachment]]:
    expired: list[Attachment] = []
    remaining: list[Attachment] = []
    for attachment in message.attachments:
        timestamp = attachment.uploaded_at or message.created_at
        if is_image_attachment(attachment) and _as_utc(timestamp) <= cutoff:
            expired.append(attachment)
        else:
            remaining.append(attachment)
    return expired, remaining


async def cleanup_expired_message_images(
    retention_days: int = 3,
    now: datetime | None = None,
) -> int:
    """Delete image attachments older than the retention window.

    Returns:
        Number of attachments removed

    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)
    removed = 0

    for message in await db.list_messages_with_attachments():
        expired, remaining = _split_expired(message, cutoff)
        if not expired:
            continue

        for attachment in expired:
            remove_stored_file(attachment)

        body = message.body
        if not has_content(body, remaining):
            body = EXPIRED_ATTACHMENT_NOTICE
        await db.update_message_content(message.id, body, remaining)
        removed += len(expired)

    if removed:
        logger.info(f"Removed {removed} expired message images (cutoff {cutoff.isoformat()})")
    return removed
