"""Shared fixtures: in-memory store, temporary uploads and API clients."""

import os
import tempfile

# Selected before kleinewelt is imported, since settings and db are module globals.
os.environ["DATABASE_BACKEND"] = "memory"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="kleinewelt-uploads-"))
os.environ.setdefault("CARE_GROUP_CACHE_DIR", tempfile.mkdtemp(prefix="kleinewelt-cache-"))

import httpx
import pytest
import pytest_asyncio

from kleinewelt.api import app
from kleinewelt.client import KleineWeltClient
from kleinewelt.config import settings
from kleinewelt.db import db
from kleinewelt_models import CaregiverProfile, ParentProfile

BASE_URL = "http://testserver"


@pytest.fixture(autouse=True)
def reset_state(tmp_path, monkeypatch):
    """Fresh store and upload directory for every test."""
    db.reset()
    monkeypatch.setattr(settings, "upload_dir", tmp_path / "uploads")
    yield
    db.reset()


@pytest_asyncio.fixture
async def http_client():
    """httpx client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def make_client(http_client):
    """Build a KleineWeltClient acting as the given user."""

    def _make(user_id: str | None) -> KleineWeltClient:
        return KleineWeltClient(user_id, base_url=BASE_URL, http_client=http_client)

    return _make


@pytest_asyncio.fixture
async def users():
    """One caregiver (c1) and two parents (p1, p2)."""
    caregiver = await db.create_caregiver(
        CaregiverProfile(
            id="c1",
            name="Anna Becker",
            email="anna@example.org",
            postal_code="10115",
            daycare_name="Sonnenschein",
            available_spots=2,
            has_availability=True,
        )
    )
    first = await db.create_parent(
        ParentProfile(id="p1", name="Paul Weber", email="paul@example.org", postal_code="10115")
    )
    second = await db.create_parent(
        ParentProfile(id="p2", name="Lena Wolf", email="lena@example.org", postal_code="10117")
    )
    return {"c1": caregiver, "p1": first, "p2": second}


class RecordingTransport(httpx.MockTransport):
    """Mock transport that keeps every request it receives."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []

        def _handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if handler is None:
                return httpx.Response(200, json=None)
            return handler(request)

        super().__init__(_handle)


@pytest.fixture
def recording_client():
    """Build a client over a RecordingTransport; returns (client, transport)."""
    clients: list[httpx.AsyncClient] = []

    def _make(user_id: str, handler=None):
        transport = RecordingTransport(handler)
        http = httpx.AsyncClient(transport=transport, base_url=BASE_URL)
        clients.append(http)
        return KleineWeltClient(user_id, base_url=BASE_URL, http_client=http), transport

    return _make


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)
