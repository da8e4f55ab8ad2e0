"""API-specific request and response models."""

from pydantic import Field

from kleinewelt_models import AttachmentUpload, CamelModel


class SendMessageRequest(CamelModel):
    """Request model for a direct message."""

    sender_id: str | None = Field(None, description="Ignored unless it differs from the caller")
    recipient_id: str | None = Field(None, description="Conversation partner")
    body: str = Field("", description="Text content")
    attachments: list[AttachmentUpload] = Field(default_factory=list)


class SendGroupMessageRequest(CamelModel):
    """Request model for a care group message."""

    body: str = Field("", description="Text content")
    attachments: list[AttachmentUpload] = Field(default_factory=list)


class CleanupResponse(CamelModel):
    """Result of an expired-image cleanup run."""

    removed: int


class RoomImageUpload(CamelModel):
    """A new room gallery image."""

    data_url: str = Field(..., description="Data URL of the image")
    file_name: str | None = None


class CaregiverUpdate(CamelModel):
    """Partial update of a caregiver profile.

    Only fields present in the request change. For ``profile_image`` and
    ``concept_file`` an explicit null removes the stored file and a data
    URL replaces it. ``room_images`` is the full new gallery: kept images
    by URL, new ones as uploads.
    """

    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    daycare_name: str | None = None
    available_spots: int | None = None
    has_availability: bool | None = None
    bio: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    logo_image_url: str | None = None

    profile_image: str | None = None
    profile_image_name: str | None = None
    concept_file: str | None = None
    concept_file_name: str | None = None
    room_images: list[str | RoomImageUpload] | None = None
