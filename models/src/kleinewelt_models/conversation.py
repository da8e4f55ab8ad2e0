"""Conversation, message and attachment models."""

from datetime import datetime

from pydantic import Field, model_validator

from kleinewelt_models.base import CamelModel, _now, _uuid

CONVERSATION_ID_SEPARATOR = "--"
GROUP_CONVERSATION_PREFIX = "caregroup"


def check_user_id(user_id: str | None) -> str:
    """Validate an identifier that takes part in conversation ids.

    The group prefix is reserved, and an id may not contain the separator
    or start or end with a hyphen. Together these keep every direct id
    distinct from every group id.

    Raises:
        ValueError: If the identifier is empty or not allowed

    """
    if not user_id:
        raise ValueError("User id is required")
    if user_id == GROUP_CONVERSATION_PREFIX:
        raise ValueError(f"User id '{user_id}' is reserved")
    if CONVERSATION_ID_SEPARATOR in user_id or user_id.startswith("-") or user_id.endswith("-"):
        raise ValueError(f"User id '{user_id}' may not contain '{CONVERSATION_ID_SEPARATOR}' or start or end with '-'")
    return user_id


def derive_conversation_id(first_user_id: str | None, second_user_id: str | None) -> str:
    """Build the canonical id of the direct thread between two users.

    Both identifiers are sorted before joining, so either participant
    resolves the same id without coordinating with the other.

    Raises:
        ValueError: If either identifier is empty, missing or not allowed

    """
    if not first_user_id or not second_user_id:
        raise ValueError("Both participant ids are required to derive a conversation id")
    check_user_id(first_user_id)
    check_user_id(second_user_id)
    return CONVERSATION_ID_SEPARATOR.join(sorted([first_user_id, second_user_id]))


def group_conversation_id(caregiver_id: str | None) -> str:
    """Conversation id of a caregiver's care group chat."""
    if not caregiver_id:
        raise ValueError("A caregiver id is required to derive a group conversation id")
    return f"{GROUP_CONVERSATION_PREFIX}{CONVERSATION_ID_SEPARATOR}{caregiver_id}"


def group_caregiver_id(conversation_id: str) -> str | None:
    """Caregiver id encoded in a group conversation id, or None."""
    prefix = f"{GROUP_CONVERSATION_PREFIX}{CONVERSATION_ID_SEPARATOR}"
    if not conversation_id or not conversation_id.startswith(prefix):
        return None
    return conversation_id[len(prefix):] or None


def has_content(body: str | None, attachments: list | None) -> bool:
    """A message needs text or at least one attachment."""
    return bool((body or "").strip()) or bool(attachments)


class Attachment(CamelModel):
    """A stored file referenced by a message."""

    key: str | None = Field(None, description="Storage key")
    url: str | None = Field(None, description="URL the file is served from")
    file_name: str | None = Field(None, description="Original file name")
    mime_type: str | None = Field(None, description="MIME type")
    size: int | None = Field(None, description="Size in bytes")
    uploaded_at: datetime | None = Field(None, description="Upload timestamp")


class AttachmentUpload(CamelModel):
    """A file as sent by a client, before it is stored."""

    data: str = Field(..., description="Data URL carrying MIME type and base64 payload")
    name: str | None = Field(None, description="Declared file name")
    mime_type: str | None = Field(None, description="Declared MIME type")
    size: int | None = Field(None, description="Declared size in bytes")


class Message(CamelModel):
    """A single chat message, direct or group."""

    id: str = Field(default_factory=_uuid, description="Unique message ID")
    conversation_id: str = Field(..., description="Thread this message belongs to")
    sender_id: str = Field(..., description="Author user ID")
    recipient_id: str | None = Field(None, description="Recipient for direct messages")
    participants: list[str] = Field(default_factory=list, description="All thread participants")
    body: str = Field("", description="Text content")
    attachments: list[Attachment] = Field(default_factory=list, description="Stored attachments")
    is_group_message: bool = Field(False, description="True for care group chat messages")
    read_by: list[str] = Field(default_factory=list, description="Users who have seen this message")
    created_at: datetime = Field(default_factory=_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=_now, description="Last update timestamp")

    @model_validator(mode="after")
    def _require_content(self) -> "Message":
        if not has_content(self.body, self.attachments):
            raise ValueError("A message needs a body or at least one attachment")
        return self


class ConversationSummary(CamelModel):
    """Latest state of a direct conversation, as listed in the inbox."""

    conversation_id: str
    participants: list[str] = Field(default_factory=list)
    read_by: list[str] = Field(default_factory=list)
    last_message: Message
    updated_at: datetime

    @classmethod
    def from_latest(cls, message: Message) -> "ConversationSummary":
        return cls(
            conversation_id=message.conversation_id,
            participants=list(message.participants),
            read_by=list(message.read_by),
            last_message=message,
            updated_at=message.created_at,
        )


class ReadReceipt(CamelModel):
    """Read state of a conversation after marking it read."""

    conversation_id: str
    read_by: list[str] = Field(default_factory=list)
