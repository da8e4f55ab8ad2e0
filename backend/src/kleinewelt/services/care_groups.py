"""Care group store: one group chat roster per caregiver."""

import logging
import uuid
from datetime import datetime, timezone

from kleinewelt_models import DEFAULT_DAYCARE_NAME, CareGroup, unique_ids
from kleinewelt.db import db
from kleinewelt.services.errors import BadRequestError, NotFoundError
from kleinewelt.services.messages import delete_group_messages

logger = logging.getLogger(__name__)


async def find_care_group_for_user(user_id: str | None) -> CareGroup | None:
    """Get the group a user owns or belongs to, or None."""
    if not user_id:
        raise BadRequestError("Missing required user field.")
    return await db.find_care_group_for_user(user_id)


async def upsert_care_group(
    caregiver_id: str | None,
    participant_ids: list[str] | None = None,
    daycare_name: str | None = None,
    logo_image_url: str | None = None,
    created_at: datetime | None = None,
) -> CareGroup:
    """Create or fully replace a caregiver's group.

    The roster is deduplicated and never contains the caregiver. An
    existing group keeps its original creation time.
    """
    if not caregiver_id:
        raise BadRequestError("Missing required caregiver field.")

    now = datetime.now(timezone.utc)
    group = CareGroup(
        id=str(uuid.uuid4()),
        caregiver_id=caregiver_id,
        participant_ids=[p for p in unique_ids(participant_ids) if p != caregiver_id],
        daycare_name=(daycare_name or "").strip() or DEFAULT_DAYCARE_NAME,
        logo_image_url=logo_image_url or "",
        created_at=created_at or now,
        updated_at=now,
    )
    saved = await db.upsert_care_group(group)
    logger.info(
        f"Saved care group of {caregiver_id} with {len(saved.participant_ids)} participants"
    )
    return saved


async def delete_care_group(caregiver_id: str | None) -> bool:
    """Delete a caregiver's group and its chat history.

    Returns:
        False if the caregiver had no group

    """
    if not caregiver_id:
        raise BadRequestError("Missing required caregiver field.")
    deleted = await db.delete_care_group(caregiver_id)
    if not deleted:
        return False
    removed = await delete_group_messages(caregiver_id)
    logger.info(f"Deleted care group of {caregiver_id} ({removed} messages)")
    return True


async def leave_care_group(user_id: str | None) -> CareGroup:
    """Remove a parent from the roster of their current group."""
    group = await find_care_group_for_user(user_id)
    if not group:
        raise NotFoundError("You are not in a care group.")
    if group.caregiver_id == user_id:
        raise BadRequestError("The caregiver cannot leave their own group; delete it instead.")

    remaining = [p for p in group.participant_ids if p != user_id]
    updated = await db.set_care_group_participants(group.caregiver_id, remaining)
    if not updated:
        raise NotFoundError("You are not in a care group.")
    logger.info(f"{user_id} left the care group of {group.caregiver_id}")
    return updated
