"""Profile directory: caregiver and parent lookups, registration and edits."""

import asyncio
import logging

from kleinewelt_models import CaregiverProfile, LocationSuggestion, ParentProfile, Profile
from kleinewelt.db import db
from kleinewelt.models import CaregiverUpdate, RoomImageUpload
from kleinewelt.services.errors import BadRequestError, NotFoundError
from kleinewelt.services.file_storage import remove_stored_file, store_data_url

logger = logging.getLogger(__name__)

PROFILE_IMAGE_FOLDER = "caregivers/profile-images"
CONCEPT_FOLDER = "caregivers/concepts"
ROOM_GALLERY_FOLDER = "caregivers/room-gallery"

# Required columns; a null in the update leaves them unchanged
_REQUIRED_FIELDS = {"name", "email", "postal_code", "available_spots", "has_availability"}
_PLAIN_FIELDS = {
    "name",
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "postal_code",
    "city",
    "daycare_name",
    "available_spots",
    "has_availability",
    "bio",
    "latitude",
    "longitude",
    "logo_image_url",
}


async def get_profile(user_id: str) -> Profile:
    """Get a caregiver or parent profile by ID."""
    profile = await db.get_profile(user_id)
    if not profile:
        raise NotFoundError("Profile not found.")
    return profile


async def get_caregiver(caregiver_id: str) -> CaregiverProfile:
    """Get a caregiver profile by ID."""
    caregiver = await db.get_caregiver(caregiver_id)
    if not caregiver:
        raise NotFoundError("Caregiver not found.")
    return caregiver


async def search_caregivers(postal_code: str | None = None) -> list[CaregiverProfile]:
    """List caregivers, newest first, optionally filtered by postal code."""
    return await db.list_caregivers(postal_code=postal_code.strip() if postal_code else None)


async def list_caregiver_locations(query: str | None = None) -> list[LocationSuggestion]:
    """Places with caregivers whose postal code starts with or city contains the query."""
    return await db.list_caregiver_locations((query or "").strip())


async def list_parents() -> list[ParentProfile]:
    """List parents, newest first."""
    return await db.list_parents()


async def register_caregiver(profile: CaregiverProfile) -> CaregiverProfile:
    """Register a new caregiver."""
    profile = await db.create_caregiver(profile)
    logger.info(f"Registered caregiver {profile.id}")
    return profile


async def register_parent(profile: ParentProfile) -> ParentProfile:
    """Register a new parent."""
    profile = await db.create_parent(profile)
    logger.info(f"Registered parent {profile.id}")
    return profile


async def _replace_file(
    current_url: str | None,
    data: str | None,
    file_name: str | None,
    folder: str,
    fallback_extension: str,
) -> str | None:
    """Store a new file (or none, for null) and remove the one it replaces."""
    new_url = None
    if data:
        stored = await asyncio.to_thread(store_data_url, data, file_name, folder, fallback_extension)
        new_url = stored.url if stored else None
    if current_url and current_url != new_url:
        remove_stored_file(current_url)
    return new_url


async def _replace_gallery(
    current: list[str], requested: list[str | RoomImageUpload]
) -> list[str]:
    gallery: list[str] = []
    for image in requested:
        if isinstance(image, str):
            if image:
                gallery.append(image)
            continue
        stored = await asyncio.to_thread(
            store_data_url, image.data_url, image.file_name, ROOM_GALLERY_FOLDER, "png"
        )
        if stored:
            gallery.append(stored.url)
    for url in current:
        if url not in gallery:
            remove_stored_file(url)
    return gallery


async def update_caregiver(caregiver_id: str, update: CaregiverUpdate) -> CaregiverProfile:
    """Apply a partial update to a caregiver profile.

    Raises:
        NotFoundError: If the caregiver does not exist
        BadRequestError: If a new file cannot be stored

    """
    existing = await db.get_caregiver(caregiver_id)
    if not existing:
        raise NotFoundError("Caregiver not found.")

    provided = update.model_fields_set
    changes = {
        field: getattr(update, field)
        for field in _PLAIN_FIELDS & provided
        if not (field in _REQUIRED_FIELDS and getattr(update, field) is None)
    }
    if "name" in changes and not changes["name"].strip():
        raise BadRequestError("Name cannot be empty.")

    if "profile_image" in provided:
        changes["profile_image_url"] = await _replace_file(
            existing.profile_image_url,
            update.profile_image,
            update.profile_image_name,
            PROFILE_IMAGE_FOLDER,
            "png",
        )
    if "concept_file" in provided:
        changes["concept_url"] = await _replace_file(
            existing.concept_url,
            update.concept_file,
            update.concept_file_name,
            CONCEPT_FOLDER,
            "pdf",
        )
    if "room_images" in provided:
        changes["room_images"] = await _replace_gallery(
            existing.room_images, update.room_images or []
        )

    updated = await db.update_caregiver(existing.model_copy(update=changes))
    if not updated:
        raise NotFoundError("Caregiver not found.")
    logger.info(f"Updated caregiver {caregiver_id} ({', '.join(sorted(changes)) or 'no changes'})")
    return updated
