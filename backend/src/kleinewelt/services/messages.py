"""Conversation store: direct and care group messages."""

import asyncio
import logging
from datetime import datetime, timezone

from kleinewelt_models import (
    Attachment,
    AttachmentUpload,
    ConversationSummary,
    Message,
    derive_conversation_id,
    group_caregiver_id,
    group_conversation_id,
    has_content,
    is_group_member,
    unique_ids,
)
from kleinewelt.db import db
from kleinewelt.services.errors import BadRequestError, ForbiddenError, NotFoundError
from kleinewelt.services.file_storage import remove_stored_file, store_data_url

logger = logging.getLogger(__name__)

ATTACHMENT_FOLDER = "messages"


async def _store_attachments(uploads: list[AttachmentUpload]) -> list[Attachment]:
    """Store uploads in order; already stored files are removed if one fails."""
    stored: list[Attachment] = []
    try:
        for upload in uploads:
            attachment = await asyncio.to_thread(
                store_data_url, upload.data, upload.name, ATTACHMENT_FOLDER
            )
            if attachment:
                stored.append(attachment)
    except Exception:
        for attachment in stored:
            remove_stored_file(attachment)
        raise
    return stored


def _remove_attachments(messages: list[Message]):
    for message in messages:
        for attachment in message.attachments:
            remove_stored_file(attachment)


def _require_direct(conversation_id: str):
    if group_caregiver_id(conversation_id) is not None:
        raise BadRequestError("Care group chats are only available through the group routes.")


async def _require_participant(conversation_id: str, user_id: str) -> list[str]:
    _require_direct(conversation_id)
    participants = await db.get_conversation_participants(conversation_id)
    if participants is None:
        raise NotFoundError("Conversation not found.")
    if user_id not in participants:
        raise ForbiddenError("You are not part of this conversation.")
    return participants


async def list_conversations_for_user(user_id: str) -> list[ConversationSummary]:
    """Latest direct message of every conversation, newest first."""
    latest = await db.list_latest_messages(user_id)
    return [ConversationSummary.from_latest(message) for message in latest]


async def list_messages(conversation_id: str, user_id: str) -> list[Message]:
    """Messages of a direct conversation, oldest first.

    An unknown conversation yields an empty list.

    Raises:
        BadRequestError: If the id belongs to a care group chat
        ForbiddenError: If the conversation exists and the user is not part of it

    """
    _require_direct(conversation_id)
    participants = await db.get_conversation_participants(conversation_id)
    if participants is None:
        return []
    if user_id not in participants:
        raise ForbiddenError("You are not part of this conversation.")
    return await db.get_messages(conversation_id)


async def send_message(
    conversation_id: str,
    sender_id: str,
    recipient_id: str | None,
    body: str | None,
    attachments: list[AttachmentUpload] | None = None,
) -> Message:
    """Append a direct message to a conversation.

    Raises:
        BadRequestError: If a participant is missing, the conversation id does
            not belong to the two participants, or the message is empty

    """
    uploads = attachments or []
    if not conversation_id or not sender_id or not recipient_id:
        raise BadRequestError("Missing required message fields.")
    if sender_id == recipient_id:
        raise BadRequestError("You cannot message yourself.")
    try:
        expected_id = derive_conversation_id(sender_id, recipient_id)
    except ValueError as e:
        raise BadRequestError(str(e)) from None
    if conversation_id != expected_id:
        raise BadRequestError("Conversation id does not match the participants.")
    text = (body or "").strip()
    if not has_content(text, uploads):
        raise BadRequestError("Message is empty.")

    stored = await _store_attachments(uploads)
    if not has_content(text, stored):
        raise BadRequestError("Message is empty.")

    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        participants=unique_ids([sender_id, recipient_id]),
        body=text,
        attachments=stored,
        read_by=[sender_id],
        created_at=now,
        updated_at=now,
    )
    message = await db.create_message(message)
    logger.info(f"Message {message.id} sent in {conversation_id}")
    return message


async def mark_conversation_read(conversation_id: str, user_id: str) -> list[str]:
    """Record that the user has seen the conversation; returns its read_by."""
    await _require_participant(conversation_id, user_id)
    return await db.mark_conversation_read(conversation_id, user_id)


async def delete_conversation(conversation_id: str, user_id: str):
    """Delete every message of a conversation, including stored files."""
    await _require_participant(conversation_id, user_id)
    deleted = await db.delete_conversation(conversation_id)
    _remove_attachments(deleted)
    logger.info(f"Conversation {conversation_id} deleted by {user_id} ({len(deleted)} messages)")


# ============= Care Group Messages =============


async def list_group_messages(conversation_id: str, user_id: str) -> list[Message]:
    """Messages of a care group chat, readable by its members only."""
    caregiver_id = group_caregiver_id(conversation_id)
    if not caregiver_id:
        raise BadRequestError("Not a care group conversation.")
    group = await db.get_care_group(caregiver_id)
    if not group:
        raise NotFoundError("Care group not found.")
    if not is_group_member(group, user_id):
        raise ForbiddenError("You are not a member of this care group.")
    return await db.get_messages(conversation_id)


async def send_group_message(
    caregiver_id: str,
    sender_id: str,
    body: str | None,
    attachments: list[AttachmentUpload] | None = None,
) -> Message:
    """Post to a care group chat. Only the owning caregiver may write."""
    uploads = attachments or []
    group = await db.get_care_group(caregiver_id)
    if not group:
        raise NotFoundError("Care group not found.")
    if group.caregiver_id != sender_id:
        raise ForbiddenError("Only the caregiver can write in the care group.")
    text = (body or "").strip()
    if not has_content(text, uploads):
        raise BadRequestError("Message is empty.")

    stored = await _store_attachments(uploads)
    if not has_content(text, stored):
        raise BadRequestError("Message is empty.")

    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=group_conversation_id(caregiver_id),
        sender_id=sender_id,
        participants=unique_ids([caregiver_id, *group.participant_ids]),
        body=text,
        attachments=stored,
        is_group_message=True,
        read_by=[sender_id],
        created_at=now,
        updated_at=now,
    )
    message = await db.create_message(message)
    logger.info(f"Group message {message.id} sent to care group of {caregiver_id}")
    return message


async def delete_group_messages(caregiver_id: str) -> int:
    """Remove a care group's chat history."""
    deleted = await db.delete_conversation(group_conversation_id(caregiver_id))
    _remove_attachments(deleted)
    return len(deleted)
