"""Care group models."""

from datetime import datetime

from pydantic import Field

from kleinewelt_models.base import CamelModel

DEFAULT_DAYCARE_NAME = "Kindertagespflegegruppe"


def unique_ids(values) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: list[str] = []
    for value in values or []:
        if isinstance(value, str) and value and value not in seen:
            seen.append(value)
    return seen


class CareGroup(CamelModel):
    """A caregiver's group chat roster.

    A caregiver owns at most one group. ``caregiver_id`` is only empty for
    drafts that have never been saved to the server.
    """

    id: str | None = Field(None, description="Server-side ID")
    caregiver_id: str | None = Field(None, description="Owning caregiver")
    participant_ids: list[str] = Field(default_factory=list, description="Parent user IDs")
    daycare_name: str = Field(DEFAULT_DAYCARE_NAME, description="Display name")
    logo_image_url: str = Field("", description="Logo URL")
    created_at: datetime | None = Field(None, description="Creation timestamp")
    updated_at: datetime | None = Field(None, description="Last mutation timestamp")


class CareGroupUpsert(CamelModel):
    """Full replacement of a care group, as sent by its caregiver."""

    caregiver_id: str
    participant_ids: list[str] = Field(default_factory=list)
    daycare_name: str | None = None
    logo_image_url: str | None = None
    created_at: datetime | None = None


def is_group_member(group: CareGroup | None, user_id: str | None) -> bool:
    """True if the user owns the group or is on its roster."""
    if group is None or not user_id:
        return False
    return group.caregiver_id == user_id or user_id in group.participant_ids
