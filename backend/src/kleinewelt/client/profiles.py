"""Profile lookups and display helpers for conversation lists."""

import asyncio
import logging

from kleinewelt.client.http import ClientError, KleineWeltClient
from kleinewelt_models import CaregiverProfile, ConversationSummary, Profile, unique_ids

logger = logging.getLogger(__name__)

UNKNOWN_CONTACT = "Unknown contact"
PREVIEW_LENGTH = 120


async def _fetch_one(client: KleineWeltClient, user_id: str) -> tuple[str, Profile | None]:
    try:
        return user_id, await client.get_user(user_id)
    except ClientError as e:
        logger.warning(f"Could not load profile {user_id}: {e}")
        return user_id, None


async def fetch_profiles(client: KleineWeltClient, user_ids) -> dict[str, Profile | None]:
    """Look up each distinct user concurrently; failed lookups map to None."""
    results = await asyncio.gather(*(_fetch_one(client, uid) for uid in unique_ids(user_ids)))
    return dict(results)


def display_name(profile: Profile | None) -> str:
    if profile is None:
        return UNKNOWN_CONTACT
    name = profile.name or " ".join(p for p in (profile.first_name, profile.last_name) if p)
    if isinstance(profile, CaregiverProfile) and profile.daycare_name:
        return f"{name} : {profile.daycare_name}" if name else profile.daycare_name
    return name or UNKNOWN_CONTACT


def conversation_preview(summary: ConversationSummary) -> str:
    """One-line preview of the latest message."""
    message = summary.last_message
    body = (message.body or "").strip()
    if body:
        if len(body) > PREVIEW_LENGTH:
            return body[: PREVIEW_LENGTH - 3] + "…"
        return body
    count = len(message.attachments)
    return f"{count} attachment" if count == 1 else f"{count} attachments"
