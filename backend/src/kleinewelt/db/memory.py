"""In-process store with the same interface as the PostgreSQL client.

Used for local development and tests. Call reset() between tests to
clear state.
"""

import logging
from datetime import datetime, timezone

from kleinewelt_models import (
    Attachment,
    CareGroup,
    CaregiverProfile,
    LocationSuggestion,
    Message,
    ParentProfile,
    Profile,
)

logger = logging.getLogger(__name__)


class MemoryDatabase:
    """Dictionary-backed store for profiles, messages and care groups."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all state."""
        self._caregivers: dict[str, CaregiverProfile] = {}
        self._parents: dict[str, ParentProfile] = {}
        self._messages: dict[str, Message] = {}
        self._care_groups: dict[str, CareGroup] = {}
        logger.info("Memory database reset")

    async def connect(self):
        """Nothing to connect."""

    async def disconnect(self):
        """Nothing to disconnect."""

    async def ensure_tables_exist(self):
        """Nothing to create."""

    # ============= Profile Operations =============

    async def create_caregiver(self, profile: CaregiverProfile) -> CaregiverProfile:
        self._caregivers[profile.id] = profile.model_copy(deep=True)
        return profile

    async def create_parent(self, profile: ParentProfile) -> ParentProfile:
        self._parents[profile.id] = profile.model_copy(deep=True)
        return profile

    async def get_caregiver(self, caregiver_id: str) -> CaregiverProfile | None:
        profile = self._caregivers.get(caregiver_id)
        return profile.model_copy(deep=True) if profile else None

    async def get_profile(self, user_id: str) -> Profile | None:
        profile = self._caregivers.get(user_id) or self._parents.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def list_caregivers(
        self, postal_code: str | None = None, limit: int = 100
    ) -> list[CaregiverProfile]:
        caregivers = [
            c for c in self._caregivers.values()
            if not postal_code or c.postal_code == postal_code
        ]
        caregivers.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in caregivers[:limit]]

    async def update_caregiver(self, profile: CaregiverProfile) -> CaregiverProfile | None:
        existing = self._caregivers.get(profile.id)
        if not existing:
            return None
        updated = profile.model_copy(update={"created_at": existing.created_at}, deep=True)
        self._caregivers[profile.id] = updated
        return updated.model_copy(deep=True)

    async def list_parents(self, limit: int = 100) -> list[ParentProfile]:
        parents = sorted(self._parents.values(), key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in parents[:limit]]

    async def list_caregiver_locations(
        self, query: str = "", limit: int = 10
    ) -> list[LocationSuggestion]:
        needle = query.lower()
        counts: dict[tuple[str, str | None], int] = {}
        for caregiver in self._caregivers.values():
            city = caregiver.city or ""
            if needle and not (caregiver.postal_code.startswith(query) or needle in city.lower()):
                continue
            key = (caregiver.postal_code, caregiver.city)
            counts[key] = counts.get(key, 0) + 1
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0][0]))
        return [
            LocationSuggestion(postal_code=postal_code, city=city, caregiver_count=count)
            for (postal_code, city), count in ordered[:limit]
        ]

    # ============= Message Operations =============

    async def create_message(self, message: Message) -> Message:
        self._messages[message.id] = message.model_copy(deep=True)
        return message

    def _conversation(self, conversation_id: str) -> list[Message]:
        messages = [m for m in self._messages.values() if m.conversation_id == conversation_id]
        messages.sort(key=lambda m: m.created_at)
        return messages

    async def get_messages(self, conversation_id: str) -> list[Message]:
        return [m.model_copy(deep=True) for m in self._conversation(conversation_id)]

    async def get_conversation_participants(self, conversation_id: str) -> list[str] | None:
        messages = self._conversation(conversation_id)
        if not messages:
            return None
        return list(messages[-1].participants)

    async def list_latest_messages(self, user_id: str, limit: int = 50) -> list[Message]:
        latest: dict[str, Message] = {}
        for message in self._messages.values():
            if message.is_group_message or user_id not in message.participants:
                continue
            current = latest.get(message.conversation_id)
            if current is None or message.created_at >= current.created_at:
                latest[message.conversation_id] = message
        ordered = sorted(latest.values(), key=lambda m: m.created_at, reverse=True)
        return [m.model_copy(deep=True) for m in ordered[:limit]]

    async def mark_conversation_read(self, conversation_id: str, user_id: str) -> list[str]:
        messages = self._conversation(conversation_id)
        for message in messages:
            if user_id not in message.read_by:
                message.read_by.append(user_id)
        return list(messages[-1].read_by) if messages else []

    async def delete_conversation(self, conversation_id: str) -> list[Message]:
        deleted = self._conversation(conversation_id)
        for message in deleted:
            del self._messages[message.id]
        return deleted

    async def list_messages_with_attachments(self) -> list[Message]:
        return [m.model_copy(deep=True) for m in self._messages.values() if m.attachments]

    async def update_message_content(
        self, message_id: str, body: str, attachments: list[Attachment]
    ):
        message = self._messages.get(message_id)
        if not message:
            return
        self._messages[message_id] = message.model_copy(
            update={
                "body": body,
                "attachments": list(attachments),
                "updated_at": datetime.now(timezone.utc),
            }
        )

    # ============= Care Group Operations =============

    async def get_care_group(self, caregiver_id: str) -> CareGroup | None:
        group = self._care_groups.get(caregiver_id)
        return group.model_copy(deep=True) if group else None

    async def find_care_group_for_user(self, user_id: str) -> CareGroup | None:
        for group in self._care_groups.values():
            if group.caregiver_id == user_id or user_id in group.participant_ids:
                return group.model_copy(deep=True)
        return None

    async def upsert_care_group(self, group: CareGroup) -> CareGroup:
        existing = self._care_groups.get(group.caregiver_id)
        if existing:
            group = group.model_copy(
                update={"id": existing.id, "created_at": existing.created_at}
            )
        self._care_groups[group.caregiver_id] = group.model_copy(deep=True)
        return group

    async def set_care_group_participants(
        self, caregiver_id: str, participant_ids: list[str]
    ) -> CareGroup | None:
        group = self._care_groups.get(caregiver_id)
        if not group:
            return None
        updated = group.model_copy(
            update={
                "participant_ids": list(participant_ids),
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._care_groups[caregiver_id] = updated
        return updated.model_copy(deep=True)

    async def delete_care_group(self, caregiver_id: str) -> bool:
        return self._care_groups.pop(caregiver_id, None) is not None
