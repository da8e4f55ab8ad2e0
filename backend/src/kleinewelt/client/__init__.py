"""Client synchronization layer for the kleinewelt API."""

from kleinewelt.client.attachments import (
    AttachmentReadError,
    AttachmentTooLargeError,
    SelectedFile,
    assemble_attachments,
)
from kleinewelt.client.cache import FileCache, KeyValueCache, MemoryCache
from kleinewelt.client.care_groups import (
    CARE_GROUP_CACHE_KEY,
    CareGroupSnapshot,
    CareGroupSync,
    NotGroupOwnerError,
    sanitize,
)
from kleinewelt.client.conversations import (
    ConversationInbox,
    ConversationThread,
    EmptyMessageError,
)
from kleinewelt.client.http import (
    ApiError,
    ApiUnavailableError,
    ClientError,
    InvalidResponseError,
    KleineWeltClient,
    user_message,
)
from kleinewelt.client.profiles import conversation_preview, display_name, fetch_profiles
from kleinewelt.client.viewport import FixedViewport, LayoutSwitcher, ViewportProvider

__all__ = [
    # HTTP
    "ApiError",
    "ApiUnavailableError",
    "ClientError",
    "InvalidResponseError",
    "KleineWeltClient",
    "user_message",
    # Cache
    "FileCache",
    "KeyValueCache",
    "MemoryCache",
    # Care groups
    "CARE_GROUP_CACHE_KEY",
    "CareGroupSnapshot",
    "CareGroupSync",
    "NotGroupOwnerError",
    "sanitize",
    # Conversations
    "ConversationInbox",
    "ConversationThread",
    "EmptyMessageError",
    # Attachments
    "AttachmentReadError",
    "AttachmentTooLargeError",
    "SelectedFile",
    "assemble_attachments",
    # Profiles
    "conversation_preview",
    "display_name",
    "fetch_profiles",
    # Viewport
    "FixedViewport",
    "LayoutSwitcher",
    "ViewportProvider",
]
