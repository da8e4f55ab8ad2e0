"""Parent and caregiver profiles."""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter, field_validator

from kleinewelt_models.base import CamelModel, _now, _uuid
from kleinewelt_models.conversation import check_user_id


class _ProfileBase(CamelModel):
    id: str = Field(default_factory=_uuid, description="Unique user ID")
    name: str = Field(..., description="Full display name")
    first_name: str | None = Field(None, description="First name")
    last_name: str | None = Field(None, description="Last name")
    email: str = Field(..., description="Contact email")
    phone: str | None = Field(None, description="Contact phone")
    address: str | None = Field(None, description="Street address")
    postal_code: str = Field(..., description="Postal code")
    city: str | None = Field(None, description="City")
    profile_image_url: str | None = Field(None, description="Profile picture URL")
    created_at: datetime = Field(default_factory=_now, description="Registration timestamp")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        return check_user_id(value)


class ParentProfile(_ProfileBase):
    """A parent looking for childcare."""

    kind: Literal["parent"] = "parent"
    number_of_children: int = Field(1, description="Number of children")
    children_ages: str | None = Field(None, description="Free-text children ages")
    notes: str | None = Field(None, description="Additional notes")


class CaregiverProfile(_ProfileBase):
    """A childcare provider (Kindertagespflegeperson)."""

    kind: Literal["caregiver"] = "caregiver"
    daycare_name: str | None = Field(None, description="Name of the daycare")
    available_spots: int = Field(0, description="Free places")
    has_availability: bool = Field(False, description="Whether places are free")
    bio: str | None = Field(None, description="Short description")
    latitude: float | None = Field(None, description="Map latitude")
    longitude: float | None = Field(None, description="Map longitude")
    logo_image_url: str | None = Field(None, description="Daycare logo URL")
    concept_url: str | None = Field(None, description="Pedagogical concept document URL")
    room_images: list[str] = Field(default_factory=list, description="Room gallery image URLs")


Profile = Annotated[Union[ParentProfile, CaregiverProfile], Field(discriminator="kind")]

profile_adapter: TypeAdapter[Profile] = TypeAdapter(Profile)


class LocationSuggestion(CamelModel):
    """A place where caregivers are listed, for search autocompletion."""

    postal_code: str
    city: str | None = None
    caregiver_count: int = 0
