"""HTTP client for the kleinewelt API."""

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from kleinewelt.config import settings
from kleinewelt_models import (
    AttachmentUpload,
    CareGroup,
    CareGroupUpsert,
    CaregiverProfile,
    ConversationSummary,
    LocationSuggestion,
    Message,
    ParentProfile,
    Profile,
    ReadReceipt,
    profile_adapter,
)

logger = logging.getLogger(__name__)

_message_adapter = TypeAdapter(Message)
_messages_adapter = TypeAdapter(list[Message])
_summaries_adapter = TypeAdapter(list[ConversationSummary])
_receipt_adapter = TypeAdapter(ReadReceipt)
_care_group_adapter = TypeAdapter(CareGroup)
_caregiver_adapter = TypeAdapter(CaregiverProfile)
_caregivers_adapter = TypeAdapter(list[CaregiverProfile])
_parents_adapter = TypeAdapter(list[ParentProfile])
_locations_adapter = TypeAdapter(list[LocationSuggestion])


class ClientError(Exception):
    """Base error for failed API calls."""


class ApiError(ClientError):
    """The server answered with an error status."""

    def __init__(self, status_code: int, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail or 'request failed'}")


class ApiUnavailableError(ClientError):
    """The server could not be reached."""


class InvalidResponseError(ClientError):
    """The server answered with a body that is not what the endpoint returns."""


def user_message(exc: BaseException, fallback: str) -> str:
    """Inline error text: the server's message if it sent one, else the fallback."""
    if isinstance(exc, ApiError) and exc.detail:
        return exc.detail
    return fallback


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return response.text or None
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("message")
        if isinstance(detail, str):
            return detail
    return None


class KleineWeltClient:
    """Async client for one signed-in user.

    The caller identity travels in the ``X-User-ID`` header. Pass an
    ``httpx.AsyncClient`` to share a connection pool or to talk to an
    in-process app through ``httpx.ASGITransport``.
    """

    def __init__(
        self,
        user_id: str | None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.user_id = user_id
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._http_client = http_client
        self.timeout = timeout or settings.client_timeout

    def _headers(self) -> dict[str, str]:
        return {"X-User-ID": self.user_id} if self.user_id else {}

    async def _send(self, client: httpx.AsyncClient, method: str, path: str, **kwargs) -> httpx.Response:
        response = await client.request(
            method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
        )
        response.raise_for_status()
        return response

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body (None for 204).

        Raises:
            ApiError: On an error status
            ApiUnavailableError: If the request could not be sent
            InvalidResponseError: If a successful response is not JSON

        """
        try:
            if self._http_client is not None:
                response = await self._send(self._http_client, method, path, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._send(client, method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning(f"{method} {path} failed: HTTP {e.response.status_code} {detail}")
            raise ApiError(e.response.status_code, detail) from e
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiUnavailableError(f"Request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {path} returned a non-JSON body")
            raise InvalidResponseError(f"{method} {path} returned a non-JSON body") from e

    async def _fetch(self, adapter: TypeAdapter, method: str, path: str, **kwargs) -> Any:
        """Request and validate the body against the endpoint's response type.

        Raises:
            InvalidResponseError: If the body does not match the response type

        """
        data = await self._request(method, path, **kwargs)
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            logger.warning(f"{method} {path} returned an unexpected body: {e.error_count()} errors")
            raise InvalidResponseError(f"{method} {path} returned an unexpected body") from e

    # ============= Messages =============

    async def list_conversations(self) -> list[ConversationSummary]:
        return await self._fetch(_summaries_adapter, "GET", "/api/messages")

    async def list_messages(self, conversation_id: str) -> list[Message]:
        return await self._fetch(_messages_adapter, "GET", f"/api/messages/{conversation_id}")

    async def send_message(
        self,
        conversation_id: str,
        recipient_id: str,
        body: str,
        attachments: list[AttachmentUpload] | None = None,
    ) -> Message:
        payload = {
            "senderId": self.user_id,
            "recipientId": recipient_id,
            "body": body,
            "attachments": [a.model_dump(mode="json", by_alias=True) for a in attachments or []],
        }
        return await self._fetch(
            _message_adapter, "POST", f"/api/messages/{conversation_id}", json=payload
        )

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/api/messages/{conversation_id}")

    async def mark_conversation_read(self, conversation_id: str) -> ReadReceipt:
        return await self._fetch(_receipt_adapter, "POST", f"/api/messages/{conversation_id}/read")

    async def list_group_messages(self, conversation_id: str) -> list[Message]:
        return await self._fetch(
            _messages_adapter, "GET", f"/api/messages/group/{conversation_id}"
        )

    async def send_group_message(
        self,
        caregiver_id: str,
        body: str,
        attachments: list[AttachmentUpload] | None = None,
    ) -> Message:
        payload = {
            "body": body,
            "attachments": [a.model_dump(mode="json", by_alias=True) for a in attachments or []],
        }
        return await self._fetch(
            _message_adapter, "POST", f"/api/messages/group/{caregiver_id}", json=payload
        )

    # ============= Care Groups =============

    async def get_care_group(self, user_id: str | None = None) -> dict | None:
        """Raw server view of a user's care group (None if there is none)."""
        params = {"userId": user_id} if user_id else None
        data = await self._request("GET", "/api/care-groups", params=params)
        if data is not None and not isinstance(data, dict):
            logger.warning(f"GET /api/care-groups returned {type(data).__name__}, expected an object")
            raise InvalidResponseError("GET /api/care-groups returned an unexpected body")
        return data

    async def save_care_group(self, group: CareGroupUpsert) -> CareGroup:
        return await self._fetch(
            _care_group_adapter,
            "PUT",
            "/api/care-groups",
            json=group.model_dump(mode="json", by_alias=True),
        )

    async def delete_care_group(self, caregiver_id: str) -> None:
        await self._request("DELETE", f"/api/care-groups/{caregiver_id}")

    async def leave_care_group(self) -> None:
        await self._request("POST", "/api/care-groups/me/leave")

    # ============= Profiles =============

    async def get_user(self, user_id: str) -> Profile:
        return await self._fetch(profile_adapter, "GET", f"/api/users/{user_id}")

    async def get_caregiver(self, caregiver_id: str) -> CaregiverProfile:
        return await self._fetch(_caregiver_adapter, "GET", f"/api/caregivers/{caregiver_id}")

    async def search_caregivers(self, postal_code: str | None = None) -> list[CaregiverProfile]:
        params = {"postalCode": postal_code} if postal_code else None
        return await self._fetch(_caregivers_adapter, "GET", "/api/caregivers", params=params)

    async def caregiver_locations(self, query: str = "") -> list[LocationSuggestion]:
        params = {"q": query} if query else None
        return await self._fetch(
            _locations_adapter, "GET", "/api/caregivers/locations", params=params
        )

    async def list_parents(self) -> list[ParentProfile]:
        return await self._fetch(_parents_adapter, "GET", "/api/parents")
