"""PostgreSQL client for profiles, messages and care groups."""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg

from kleinewelt_models import (
    Attachment,
    CareGroup,
    CaregiverProfile,
    LocationSuggestion,
    Message,
    ParentProfile,
    Profile,
)
from kleinewelt.config import settings


SCHEMA_SQL = """
-- Profile directory
CREATE TABLE IF NOT EXISTS caregivers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    email TEXT NOT NULL,
    phone TEXT,
    address TEXT,
    postal_code TEXT NOT NULL,
    city TEXT,
    daycare_name TEXT,
    available_spots INTEGER NOT NULL DEFAULT 0,
    has_availability BOOLEAN NOT NULL DEFAULT FALSE,
    bio TEXT,
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION,
    logo_image_url TEXT,
    concept_url TEXT,
    room_images TEXT[] NOT NULL DEFAULT '{}',
    profile_image_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_caregivers_postal_code ON caregivers(postal_code);

CREATE TABLE IF NOT EXISTS parents (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    email TEXT NOT NULL,
    phone TEXT,
    address TEXT,
    postal_code TEXT NOT NULL,
    city TEXT,
    number_of_children INTEGER NOT NULL DEFAULT 1,
    children_ages TEXT,
    notes TEXT,
    profile_image_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Messages (direct and care group)
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    sender_id TEXT NOT NULL,
    recipient_id TEXT,
    participants TEXT[] NOT NULL DEFAULT '{}',
    body TEXT NOT NULL DEFAULT '',
    attachments JSONB NOT NULL DEFAULT '[]',
    is_group_message BOOLEAN NOT NULL DEFAULT FALSE,
    read_by TEXT[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id);
CREATE INDEX IF NOT EXISTS idx_messages_participants ON messages USING GIN (participants);

-- Care groups (one per caregiver)
CREATE TABLE IF NOT EXISTS care_groups (
    id TEXT PRIMARY KEY,
    caregiver_id TEXT NOT NULL UNIQUE,
    participant_ids TEXT[] NOT NULL DEFAULT '{}',
    daycare_name TEXT NOT NULL,
    logo_image_url TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_care_groups_participants ON care_groups USING GIN (participant_ids);
"""


class Database:
    """PostgreSQL database client."""

    def __init__(self):
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool."""
        if not settings.database_url:
            return
        self._pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=2,
            max_size=10,
        )

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        async with self._pool.acquire() as conn:
            yield conn

    async def ensure_tables_exist(self):
        """Create tables if they don't exist."""
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    # ============= Profile Operations =============

    async def create_caregiver(self, profile: CaregiverProfile) -> CaregiverProfile:
        """Register a caregiver."""
        if not self._pool:
            return profile
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO caregivers
                (id, name, first_name, last_name, email, phone, address, postal_code, city,
                 daycare_name, available_spots, has_availability, bio, latitude, longitude,
                 logo_image_url, concept_url, room_images, profile_image_url, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15,
                        $16, $17, $18, $19, $20)
                """,
                *self._caregiver_values(profile),
            )
        return profile

    async def update_caregiver(self, profile: CaregiverProfile) -> CaregiverProfile | None:
        """Overwrite a caregiver's editable fields. Returns None if it does not exist."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE caregivers
                SET name = $2, first_name = $3, last_name = $4, email = $5, phone = $6,
                    address = $7, postal_code = $8, city = $9, daycare_name = $10,
                    available_spots = $11, has_availability = $12, bio = $13,
                    latitude = $14, longitude = $15, logo_image_url = $16,
                    concept_url = $17, room_images = $18, profile_image_url = $19
                WHERE id = $1
                RETURNING *
                """,
                *self._caregiver_values(profile)[:-1],
            )
        if not row:
            return None
        return CaregiverProfile(**dict(row))

    def _caregiver_values(self, profile: CaregiverProfile) -> list:
        return [
            profile.id,
            profile.name,
            profile.first_name,
            profile.last_name,
            profile.email,
            profile.phone,
            profile.address,
            profile.postal_code,
            profile.city,
            profile.daycare_name,
            profile.available_spots,
            profile.has_availability,
            profile.bio,
            profile.latitude,
            profile.longitude,
            profile.logo_image_url,
            profile.concept_url,
            profile.room_images,
            profile.profile_image_url,
            profile.created_at,
        ]

    async def create_parent(self, profile: ParentProfile) -> ParentProfile:
        """Register a parent."""
        if not self._pool:
            return profile
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO parents
                (id, name, first_name, last_name, email, phone, address, postal_code, city,
                 number_of_children, children_ages, notes, profile_image_url, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                """,
                profile.id,
                profile.name,
                profile.first_name,
                profile.last_name,
                profile.email,
                profile.phone,
                profile.address,
                profile.postal_code,
                profile.city,
                profile.number_of_children,
                profile.children_ages,
                profile.notes,
                profile.profile_image_url,
                profile.created_at,
            )
        return profile

    async def get_caregiver(self, caregiver_id: str) -> CaregiverProfile | None:
        """Get a caregiver by ID."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM caregivers WHERE id = $1", caregiver_id
            )
        if not row:
            return None
        return CaregiverProfile(**dict(row))

    async def get_profile(self, user_id: str) -> Profile | None:
        """Get a caregiver or parent by ID."""
        if not self._pool:
            return None
        caregiver = await self.get_caregiver(user_id)
        if caregiver:
            return caregiver
        async with self.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM parents WHERE id = $1", user_id)
        if not row:
            return None
        return ParentProfile(**dict(row))

    async def list_caregivers(
        self, postal_code: str | None = None, limit: int = 100
    ) -> list[CaregiverProfile]:
        """List caregivers, newest first, optionally by postal code."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            if postal_code:
                rows = await conn.fetch(
                    """
                    SELECT * FROM caregivers
                    WHERE postal_code = $1
                    ORDER BY created_at DESC
                    LIMIT $2
                    """,
                    postal_code,
                    limit,
                )
            else:
                rows = await conn.fetch(
                    "SELECT * FROM caregivers ORDER BY created_at DESC LIMIT $1",
                    limit,
                )
        return [CaregiverProfile(**dict(row)) for row in rows]

    async def list_parents(self, limit: int = 100) -> list[ParentProfile]:
        """List parents, newest first."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM parents ORDER BY created_at DESC LIMIT $1",
                limit,
            )
        return [ParentProfile(**dict(row)) for row in rows]

    async def list_caregiver_locations(
        self, query: str = "", limit: int = 10
    ) -> list[LocationSuggestion]:
        """Postal code and city pairs with caregivers, matching a prefix or city fragment."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT postal_code, city, COUNT(*) AS caregiver_count
                FROM caregivers
                WHERE $1 = '' OR postal_code LIKE $1 || '%' OR city ILIKE '%' || $1 || '%'
                GROUP BY postal_code, city
                ORDER BY caregiver_count DESC, postal_code ASC
                LIMIT $2
                """,
                query,
                limit,
            )
        return [LocationSuggestion(**dict(row)) for row in rows]

    # ============= Message Operations =============

    async def create_message(self, message: Message) -> Message:
        """Persist a new message."""
        if not self._pool:
            return message
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO messages
                (id, conversation_id, sender_id, recipient_id, participants, body,
                 attachments, is_group_message, read_by, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                """,
                message.id,
                message.conversation_id,
                message.sender_id,
                message.recipient_id,
                message.participants,
                message.body,
                self._dump_attachments(message.attachments),
                message.is_group_message,
                message.read_by,
                message.created_at,
                message.updated_at,
            )
        return message

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Get all messages of a conversation, oldest first."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE conversation_id = $1
                ORDER BY created_at ASC
                """,
                conversation_id,
            )
        return [self._row_to_message(row) for row in rows]

    async def get_conversation_participants(self, conversation_id: str) -> list[str] | None:
        """Participants of a conversation, or None if it has no messages."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT participants FROM messages
                WHERE conversation_id = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                conversation_id,
            )
        if not row:
            return None
        return list(row["participants"])

    async def list_latest_messages(self, user_id: str, limit: int = 50) -> list[Message]:
        """Latest direct message of each conversation the user takes part in."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM (
                    SELECT DISTINCT ON (conversation_id) *
                    FROM messages
                    WHERE $1 = ANY(participants) AND NOT is_group_message
                    ORDER BY conversation_id, created_at DESC
                ) latest
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [self._row_to_message(row) for row in rows]

    async def mark_conversation_read(self, conversation_id: str, user_id: str) -> list[str]:
        """Add the user to read_by of every message; return the latest read_by."""
        if not self._pool:
            return [user_id]
        async with self.connection() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    UPDATE messages
                    SET read_by = array_append(read_by, $2)
                    WHERE conversation_id = $1 AND NOT ($2 = ANY(read_by))
                    """,
                    conversation_id,
                    user_id,
                )
                row = await conn.fetchrow(
                    """
                    SELECT read_by FROM messages
                    WHERE conversation_id = $1
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    conversation_id,
                )
        return list(row["read_by"]) if row else []

    async def delete_conversation(self, conversation_id: str) -> list[Message]:
        """Delete all messages of a conversation and return them."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                "DELETE FROM messages WHERE conversation_id = $1 RETURNING *",
                conversation_id,
            )
        return [self._row_to_message(row) for row in rows]

    async def list_messages_with_attachments(self) -> list[Message]:
        """All messages that still carry attachments."""
        if not self._pool:
            return []
        async with self.connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM messages WHERE jsonb_array_length(attachments) > 0"
            )
        return [self._row_to_message(row) for row in rows]

    async def update_message_content(
        self, message_id: str, body: str, attachments: list[Attachment]
    ):
        """Replace body and attachments of a message."""
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute(
                """
                UPDATE messages
                SET body = $1, attachments = $2, updated_at = $3
                WHERE id = $4
                """,
                body,
                self._dump_attachments(attachments),
                datetime.now(timezone.utc),
                message_id,
            )

    def _dump_attachments(self, attachments: list[Attachment]) -> str:
        return json.dumps([a.model_dump(mode="json", by_alias=True) for a in attachments])

    def _row_to_message(self, row: asyncpg.Record) -> Message:
        attachments = row["attachments"]
        if isinstance(attachments, str):
            attachments = json.loads(attachments)
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender_id=row["sender_id"],
            recipient_id=row["recipient_id"],
            participants=list(row["participants"]) if row["participants"] else [],
            body=row["body"],
            attachments=[Attachment.model_validate(a) for a in attachments or []],
            is_group_message=row["is_group_message"],
            read_by=list(row["read_by"]) if row["read_by"] else [],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ============= Care Group Operations =============

    async def get_care_group(self, caregiver_id: str) -> CareGroup | None:
        """Get the care group owned by a caregiver."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM care_groups WHERE caregiver_id = $1", caregiver_id
            )
        if not row:
            return None
        return self._row_to_care_group(row)

    async def find_care_group_for_user(self, user_id: str) -> CareGroup | None:
        """Get the care group a user owns or belongs to."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM care_groups
                WHERE caregiver_id = $1 OR $1 = ANY(participant_ids)
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                user_id,
            )
        if not row:
            return None
        return self._row_to_care_group(row)

    async def upsert_care_group(self, group: CareGroup) -> CareGroup:
        """Insert or replace a caregiver's group, keeping its created_at."""
        if not self._pool:
            return group
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO care_groups
                (id, caregiver_id, participant_ids, daycare_name, logo_image_url, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (caregiver_id) DO UPDATE
                SET participant_ids = EXCLUDED.participant_ids,
                    daycare_name = EXCLUDED.daycare_name,
                    logo_image_url = EXCLUDED.logo_image_url,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                group.id,
                group.caregiver_id,
                group.participant_ids,
                group.daycare_name,
                group.logo_image_url,
                group.created_at,
                group.updated_at,
            )
        return self._row_to_care_group(row)

    async def set_care_group_participants(
        self, caregiver_id: str, participant_ids: list[str]
    ) -> CareGroup | None:
        """Replace the roster of a caregiver's group."""
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE care_groups
                SET participant_ids = $1, updated_at = $2
                WHERE caregiver_id = $3
                RETURNING *
                """,
                participant_ids,
                datetime.now(timezone.utc),
                caregiver_id,
            )
        if not row:
            return None
        return self._row_to_care_group(row)

    async def delete_care_group(self, caregiver_id: str) -> bool:
        """Delete a caregiver's group. Returns False if there was none."""
        if not self._pool:
            return False
        async with self.connection() as conn:
            result = await conn.execute(
                "DELETE FROM care_groups WHERE caregiver_id = $1", caregiver_id
            )
        return result != "DELETE 0"

    def _row_to_care_group(self, row: asyncpg.Record) -> CareGroup:
        return CareGroup(
            id=row["id"],
            caregiver_id=row["caregiver_id"],
            participant_ids=list(row["participant_ids"]) if row["participant_ids"] else [],
            daycare_name=row["daycare_name"],
            logo_image_url=row["logo_image_url"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
