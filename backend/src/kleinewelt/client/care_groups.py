"""Care group state kept in sync between the server and a local cache.

The server is authoritative. The cached snapshot is only a projection
used when the server cannot be reached, and for drafts that have no
caregiver yet.
"""

import json
import logging
from collections.abc import Mapping
from datetime import datetime

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from kleinewelt.client.attachments import SelectedFile, assemble_attachments
from kleinewelt.client.cache import FileCache, KeyValueCache
from kleinewelt.client.conversations import EmptyMessageError
from kleinewelt.client.http import ClientError, KleineWeltClient
from kleinewelt.config import settings
from kleinewelt_models import (
    DEFAULT_DAYCARE_NAME,
    CareGroup,
    CareGroupUpsert,
    Message,
    group_conversation_id,
    has_content,
    unique_ids,
)

logger = logging.getLogger(__name__)

CARE_GROUP_CACHE_KEY = "kleinewelt:caregroup:v1"

_datetime_adapter = TypeAdapter(datetime)


class CareGroupSnapshot(CareGroup):
    """Cached care group, including the last loaded chat messages."""

    messages: list[Message] = Field(default_factory=list)


class NotGroupOwnerError(Exception):
    """Only the caregiver who owns a group may post to it."""


def _field(data: Mapping, camel: str, snake: str):
    return data[camel] if camel in data else data.get(snake)


def _timestamp(value) -> datetime | None:
    if not value:
        return None
    try:
        return _datetime_adapter.validate_python(value)
    except ValidationError:
        return None


def _messages(value) -> list[Message]:
    if not isinstance(value, list):
        return []
    messages = []
    for entry in value:
        if isinstance(entry, Message):
            messages.append(entry)
            continue
        try:
            messages.append(Message.model_validate(entry))
        except ValidationError:
            logger.debug("Dropping invalid cached care group message")
    return messages


def sanitize(value) -> CareGroupSnapshot | None:
    """Normalize any input into the canonical care group shape.

    Returns None for inputs that are not mappings or models. Applying it
    twice gives the same result as applying it once.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if not isinstance(value, Mapping):
        return None

    caregiver_id = _field(value, "caregiverId", "caregiver_id")
    group_id = value.get("id")
    daycare_name = _field(value, "daycareName", "daycare_name")
    logo_image_url = _field(value, "logoImageUrl", "logo_image_url")

    return CareGroupSnapshot(
        id=group_id if isinstance(group_id, str) and group_id else None,
        caregiver_id=caregiver_id if isinstance(caregiver_id, str) and caregiver_id else None,
        participant_ids=unique_ids(_field(value, "participantIds", "participant_ids")),
        daycare_name=daycare_name if isinstance(daycare_name, str) and daycare_name.strip() else DEFAULT_DAYCARE_NAME,
        logo_image_url=logo_image_url if isinstance(logo_image_url, str) else "",
        created_at=_timestamp(_field(value, "createdAt", "created_at")),
        updated_at=_timestamp(_field(value, "updatedAt", "updated_at")),
        messages=_messages(value.get("messages")),
    )


class CareGroupSync:
    """Loads, saves and removes the signed-in user's care group."""

    def __init__(
        self,
        client: KleineWeltClient,
        cache: KeyValueCache | None = None,
        max_attachment_bytes: int | None = None,
    ):
        self.client = client
        self.cache = cache if cache is not None else FileCache(settings.care_group_cache_dir)
        self.max_attachment_bytes = max_attachment_bytes

    # ============= Cache =============

    def read_cached(self) -> CareGroupSnapshot | None:
        raw = self.cache.get(CARE_GROUP_CACHE_KEY)
        if not raw:
            return None
        try:
            return sanitize(json.loads(raw))
        except ValueError as e:
            logger.warning(f"Could not read cached care group: {e}")
            return None

    def write_cached(self, group) -> CareGroupSnapshot | None:
        """Store the sanitized group; an unusable value clears the entry."""
        sanitized = sanitize(group)
        if sanitized is None:
            self.cache.delete(CARE_GROUP_CACHE_KEY)
            return None
        self.cache.set(CARE_GROUP_CACHE_KEY, sanitized.model_dump_json(by_alias=True))
        return sanitized

    def clear_cached(self) -> None:
        self.cache.delete(CARE_GROUP_CACHE_KEY)

    # ============= Server =============

    async def load(self, user_id: str | None) -> CareGroupSnapshot | None:
        """Fetch the user's group, falling back to the cache if that fails.

        Never raises. Without a user id only the cache is consulted.
        """
        if not user_id:
            return self.read_cached()

        try:
            remote = await self.client.get_care_group(user_id)
        except ClientError as e:
            logger.warning(f"Loading care group for {user_id} failed, using cache: {e}")
            return self.read_cached()

        return self.write_cached(remote)

    async def persist(self, group) -> CareGroupSnapshot | None:
        """Save a group and cache the server's version of it.

        Drafts without a caregiver are only cached. Errors from the server
        propagate and leave the cache as it was.
        """
        sanitized = sanitize(group)
        if sanitized is None:
            self.clear_cached()
            return None
        if not sanitized.caregiver_id:
            return self.write_cached(sanitized)

        saved = await self.client.save_care_group(
            CareGroupUpsert(
                caregiver_id=sanitized.caregiver_id,
                participant_ids=sanitized.participant_ids,
                daycare_name=sanitized.daycare_name,
                logo_image_url=sanitized.logo_image_url,
                created_at=sanitized.created_at,
            )
        )
        snapshot = saved.model_dump()
        snapshot["messages"] = sanitized.messages
        return self.write_cached(snapshot)

    async def remove(self, caregiver_id: str | None) -> None:
        """Delete the group on the server, then forget it locally."""
        if caregiver_id:
            await self.client.delete_care_group(caregiver_id)
            logger.info(f"Removed care group of {caregiver_id}")
        self.clear_cached()

    async def leave(self) -> None:
        await self.client.leave_care_group()
        self.clear_cached()

    # ============= Group Chat =============

    async def load_messages(self, group: CareGroupSnapshot | None) -> list[Message]:
        """Load the group chat; the cached messages are used if that fails."""
        if group is None or not group.caregiver_id:
            return []

        try:
            messages = await self.client.list_group_messages(
                group_conversation_id(group.caregiver_id)
            )
        except ClientError as e:
            logger.warning(f"Loading messages of care group {group.caregiver_id} failed: {e}")
            return list(group.messages)

        cached = self.read_cached()
        if cached and cached.caregiver_id == group.caregiver_id:
            cached.messages = messages
            self.write_cached(cached)
        return messages

    async def send_message(
        self,
        group: CareGroupSnapshot | None,
        sender_id: str,
        body: str,
        files: list[SelectedFile] | tuple[SelectedFile, ...] = (),
    ) -> Message:
        """Post to the group chat as its caregiver.

        Raises:
            NotGroupOwnerError: If the sender does not own the group
            EmptyMessageError: If there is neither text nor a file
            ClientError: If the server rejects the message

        """
        if group is None or not group.caregiver_id or group.caregiver_id != sender_id:
            raise NotGroupOwnerError("Only the caregiver can write to the care group.")
        if not has_content(body, list(files)):
            raise EmptyMessageError()

        attachments = await assemble_attachments(files, max_bytes=self.max_attachment_bytes)
        message = await self.client.send_group_message(
            group.caregiver_id,
            body=(body or "").strip(),
            attachments=attachments,
        )

        cached = self.read_cached()
        if cached and cached.caregiver_id == group.caregiver_id:
            cached.messages.append(message)
            cached.updated_at = message.created_at
            self.write_cached(cached)
        return message
