"""Shared Pydantic models for kleinewelt."""

from kleinewelt_models.base import CamelModel
from kleinewelt_models.conversation import (
    Attachment,
    AttachmentUpload,
    ConversationSummary,
    Message,
    ReadReceipt,
    check_user_id,
    derive_conversation_id,
    group_caregiver_id,
    group_conversation_id,
    has_content,
)
from kleinewelt_models.care_group import (
    DEFAULT_DAYCARE_NAME,
    CareGroup,
    CareGroupUpsert,
    is_group_member,
    unique_ids,
)
from kleinewelt_models.profile import (
    CaregiverProfile,
    LocationSuggestion,
    ParentProfile,
    Profile,
    profile_adapter,
)

__all__ = [
    "CamelModel",
    # Conversations
    "Attachment",
    "AttachmentUpload",
    "ConversationSummary",
    "Message",
    "ReadReceipt",
    "check_user_id",
    "derive_conversation_id",
    "group_caregiver_id",
    "group_conversation_id",
    "has_content",
    # Care groups
    "DEFAULT_DAYCARE_NAME",
    "CareGroup",
    "CareGroupUpsert",
    "is_group_member",
    "unique_ids",
    # Profiles
    "CaregiverProfile",
    "LocationSuggestion",
    "ParentProfile",
    "Profile",
    "profile_adapter",
]
