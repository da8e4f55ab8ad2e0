"""FastAPI application for profiles, messaging and care groups."""

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from kleinewelt.config import settings
from kleinewelt.db import db
from kleinewelt.models import (
    CaregiverUpdate,
    CleanupResponse,
    SendGroupMessageRequest,
    SendMessageRequest,
)
from kleinewelt.services import care_groups, messages, profiles
from kleinewelt.services.errors import ServiceError
from kleinewelt.services.file_storage import resolve_upload_path
from kleinewelt.services.message_cleanup import cleanup_expired_message_images
from kleinewelt_models import (
    CareGroup,
    CareGroupUpsert,
    CaregiverProfile,
    ConversationSummary,
    LocationSuggestion,
    Message,
    ParentProfile,
    Profile,
    ReadReceipt,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="kleinewelt API",
    description="Childcare matching, direct messaging and care group chat",
    version="0.1.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Connect the database and prepare the upload directory."""
    await db.connect()
    await db.ensure_tables_exist()
    settings.upload_dir.mkdir(parents=True, exist_ok=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown."""
    await db.disconnect()


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors as {"detail": message}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_user_id(user_id: str | None = Header(alias="X-User-ID", default=None)) -> str:
    """Caller identity, forwarded by the authenticating proxy."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


# ============= Health =============


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============= Care Group Messages =============
# Registered before the direct message routes so "group" is never read as a conversation id.


@app.get("/api/messages/group/{conversation_id}", response_model=list[Message])
async def get_group_messages(conversation_id: str, user_id: str = Depends(get_user_id)):
    """List the messages of a care group chat."""
    return await messages.list_group_messages(conversation_id, user_id)


@app.post("/api/messages/group/{caregiver_id}", response_model=Message, status_code=201)
async def post_group_message(
    caregiver_id: str,
    request: SendGroupMessageRequest,
    user_id: str = Depends(get_user_id),
):
    """Post to a care group chat (caregiver only)."""
    return await messages.send_group_message(
        caregiver_id=caregiver_id,
        sender_id=user_id,
        body=request.body,
        attachments=request.attachments,
    )


# ============= Direct Messages =============


@app.get("/api/messages", response_model=list[ConversationSummary])
async def list_conversations(user_id: str = Depends(get_user_id)):
    """List the caller's conversations, newest first."""
    return await messages.list_conversations_for_user(user_id)


@app.get("/api/messages/{conversation_id}", response_model=list[Message])
async def get_messages(conversation_id: str, user_id: str = Depends(get_user_id)):
    """List the messages of a conversation."""
    return await messages.list_messages(conversation_id, user_id)


@app.post("/api/messages/{conversation_id}", response_model=Message, status_code=201)
async def post_message(
    conversation_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_user_id),
):
    """Send a direct message."""
    if request.sender_id and request.sender_id != user_id:
        raise HTTPException(status_code=403, detail="You can only send as yourself.")
    return await messages.send_message(
        conversation_id=conversation_id,
        sender_id=user_id,
        recipient_id=request.recipient_id,
        body=request.body,
        attachments=request.attachments,
    )


@app.delete("/api/messages/{conversation_id}", status_code=204)
async def delete_conversation(conversation_id: str, user_id: str = Depends(get_user_id)):
    """Delete a conversation."""
    await messages.delete_conversation(conversation_id, user_id)
    return Response(status_code=204)


@app.post("/api/messages/{conversation_id}/read", response_model=ReadReceipt)
async def mark_conversation_read(conversation_id: str, user_id: str = Depends(get_user_id)):
    """Mark a conversation as read by the caller."""
    read_by = await messages.mark_conversation_read(conversation_id, user_id)
    return ReadReceipt(conversation_id=conversation_id, read_by=read_by)


# ============= Care Groups =============


@app.get("/api/care-groups", response_model=CareGroup | None)
async def get_care_group(
    requested_user_id: str | None = Query(None, alias="userId"),
    user_id: str = Depends(get_user_id),
):
    """Get the care group of the caller (or of ``userId``, which must be the caller)."""
    target = requested_user_id or user_id
    if target != user_id:
        raise HTTPException(status_code=403, detail="You can only load your own care group.")
    return await care_groups.find_care_group_for_user(target)


@app.get("/api/care-groups/me", response_model=CareGroup | None)
async def get_own_care_group(user_id: str = Depends(get_user_id)):
    """Get the caller's care group."""
    return await care_groups.find_care_group_for_user(user_id)


@app.put("/api/care-groups", response_model=CareGroup)
async def save_care_group(request: CareGroupUpsert, user_id: str = Depends(get_user_id)):
    """Create or replace the caller's care group."""
    if request.caregiver_id != user_id:
        raise HTTPException(status_code=403, detail="You can only save your own care group.")
    return await care_groups.upsert_care_group(
        caregiver_id=request.caregiver_id,
        participant_ids=request.participant_ids,
        daycare_name=request.daycare_name,
        logo_image_url=request.logo_image_url,
        created_at=request.created_at,
    )


@app.delete("/api/care-groups/{caregiver_id}", status_code=204)
async def delete_care_group(caregiver_id: str, user_id: str = Depends(get_user_id)):
    """Delete the caller's care group."""
    if caregiver_id != user_id:
        raise HTTPException(status_code=403, detail="You can only delete your own care group.")
    await care_groups.delete_care_group(caregiver_id)
    return Response(status_code=204)


@app.post("/api/care-groups/me/leave", status_code=204)
async def leave_care_group(user_id: str = Depends(get_user_id)):
    """Remove the caller from their care group."""
    await care_groups.leave_care_group(user_id)
    return Response(status_code=204)


# ============= Profiles =============


@app.get("/api/users/{profile_id}", response_model=Profile)
async def get_user(profile_id: str, user_id: str = Depends(get_user_id)):
    """Get a parent or caregiver profile."""
    return await profiles.get_profile(profile_id)


@app.get("/api/caregivers", response_model=list[CaregiverProfile])
async def list_caregivers(
    postal_code: str | None = Query(None, alias="postalCode"),
    user_id: str = Depends(get_user_id),
):
    """Search caregivers, optionally by postal code."""
    return await profiles.search_caregivers(postal_code)


@app.get("/api/caregivers/locations", response_model=list[LocationSuggestion])
async def list_caregiver_locations(
    q: str | None = Query(None, description="Postal code prefix or city fragment"),
    user_id: str = Depends(get_user_id),
):
    """Suggest places with caregivers for the map search."""
    return await profiles.list_caregiver_locations(q)


@app.get("/api/caregivers/{caregiver_id}", response_model=CaregiverProfile)
async def get_caregiver(caregiver_id: str, user_id: str = Depends(get_user_id)):
    """Get a caregiver profile."""
    return await profiles.get_caregiver(caregiver_id)


@app.patch("/api/caregivers/{caregiver_id}", response_model=CaregiverProfile)
async def update_caregiver(
    caregiver_id: str,
    request: CaregiverUpdate,
    user_id: str = Depends(get_user_id),
):
    """Edit the caller's caregiver profile, including its files."""
    if caregiver_id != user_id:
        raise HTTPException(status_code=403, detail="You can only edit your own profile.")
    return await profiles.update_caregiver(caregiver_id, request)


@app.post("/api/caregivers", response_model=CaregiverProfile, status_code=201)
async def register_caregiver(profile: CaregiverProfile):
    """Register a caregiver."""
    return await profiles.register_caregiver(profile)


@app.get("/api/parents", response_model=list[ParentProfile])
async def list_parents(user_id: str = Depends(get_user_id)):
    """List parents, newest first."""
    return await profiles.list_parents()


@app.post("/api/parents", response_model=ParentProfile, status_code=201)
async def register_parent(profile: ParentProfile):
    """Register a parent."""
    return await profiles.register_parent(profile)


# ============= Files =============


@app.get("/uploads/{key:path}")
async def get_upload(key: str):
    """Serve a stored attachment."""
    path = resolve_upload_path(key)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)


# ============= Internal Endpoints =============


@app.post("/internal/messages/cleanup-images", response_model=CleanupResponse)
async def cleanup_message_images():
    """Remove image attachments older than the retention window."""
    removed = await cleanup_expired_message_images(
        retention_days=settings.message_image_retention_days
    )
    return CleanupResponse(removed=removed)


# ============= Run =============


def run():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "kleinewelt.api:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )


if __name__ == "__main__":
    run()
