"""Tests for removal of expired message images."""

from datetime import datetime, timedelta, timezone

import pytest

from kleinewelt.config import settings
from kleinewelt.db import db
from kleinewelt.services.file_storage import store_data_url
from kleinewelt.services.message_cleanup import (
    EXPIRED_ATTACHMENT_NOTICE,
    cleanup_expired_message_images,
    is_image_attachment,
)
from kleinewelt_models import Attachment, Message

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def _stored(name: str, mime_type: str, uploaded_at: datetime) -> Attachment:
    attachment = store_data_url(f"data:{mime_type};base64,eA==", name, "messages")
    return attachment.model_copy(update={"uploaded_at": uploaded_at})


async def _message(body: str, attachments: list[Attachment]) -> Message:
    return await db.create_message(
        Message(
            conversation_id="c1--p1",
            sender_id="c1",
            recipient_id="p1",
            participants=["c1", "p1"],
            body=body,
            attachments=attachments,
            created_at=NOW - timedelta(days=10),
        )
    )


class TestIsImageAttachment:
    """Test is_image_attachment."""

    def test_by_mime_type_or_extension(self):
        assert is_image_attachment(Attachment(mime_type="image/heic"))
        assert is_image_attachment(Attachment(file_name="IMG_0001.JPG"))
        assert not is_image_attachment(Attachment(file_name="plan.pdf", mime_type="application/pdf"))
        assert not is_image_attachment(None)


class TestCleanupExpiredMessageImages:
    """Test cleanup_expired_message_images."""

    @pytest.mark.asyncio
    async def test_removes_only_expired_images(self):
        old_image = _stored("alt.png", "image/png", NOW - timedelta(days=4))
        new_image = _stored("neu.png", "image/png", NOW - timedelta(days=1))
        old_pdf = _stored("plan.pdf", "application/pdf", NOW - timedelta(days=30))
        message = await _message("Fotos", [old_image, new_image, old_pdf])

        removed = await cleanup_expired_message_images(retention_days=3, now=NOW)

        assert removed == 1
        [updated] = await db.get_messages("c1--p1")
        assert [a.key for a in updated.attachments] == [new_image.key, old_pdf.key]
        assert updated.body == message.body
        assert not (settings.upload_dir / old_image.key).exists()
        assert (settings.upload_dir / new_image.key).exists()

    @pytest.mark.asyncio
    async def test_image_only_message_gets_notice(self):
        """A message left without content still satisfies the content rule."""
        await _message("", [_stored("alt.jpg", "image/jpeg", NOW - timedelta(days=3))])

        assert await cleanup_expired_message_images(retention_days=3, now=NOW) == 1

        [updated] = await db.get_messages("c1--p1")
        assert updated.attachments == []
        assert updated.body == EXPIRED_ATTACHMENT_NOTICE

    @pytest.mark.asyncio
    async def test_falls_back_to_message_time(self):
        image = Attachment(key="messages/missing.png", mime_type="image/png")
        await _message("", [image])

        assert await cleanup_expired_message_images(retention_days=3, now=NOW) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_do(self):
        assert await cleanup_expired_message_images(now=NOW) == 0
