"""Tests for the inbox and direct threads."""

import httpx
import pytest

from conftest import unreachable
from kleinewelt.client import (
    ApiError,
    ConversationInbox,
    ConversationThread,
    EmptyMessageError,
    SelectedFile,
)
from kleinewelt_models import ConversationSummary, Message


def _summary(conversation_id: str, read_by: list[str]) -> ConversationSummary:
    sender, recipient = conversation_id.split("--")
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender,
        recipient_id=recipient,
        participants=[sender, recipient],
        body="Hallo",
        read_by=read_by,
    )
    return ConversationSummary.from_latest(message)


class TestConversationThread:
    """Test ConversationThread."""

    def test_conversation_id_is_shared(self, recording_client):
        client, _ = recording_client("p1")
        assert ConversationThread(client, "p1", "c1").conversation_id == "c1--p1"
        assert ConversationThread(client, "c1", "p1").conversation_id == "c1--p1"

    @pytest.mark.asyncio
    async def test_empty_message_fails_before_any_request(self, recording_client):
        client, transport = recording_client("p1")
        thread = ConversationThread(client, "p1", "c1")

        with pytest.raises(EmptyMessageError):
            await thread.send("   ")

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_attachment_without_text(self, make_client, users, tmp_path):
        """An empty body with one attachment is sent and stored."""
        document = tmp_path / "vertrag.pdf"
        document.write_bytes(b"%PDF-1.4 contract")
        thread = ConversationThread(make_client("p1"), "p1", "c1")

        message = await thread.send("", [SelectedFile(document)])

        assert message.body == ""
        assert message.attachments[0].file_name == "vertrag.pdf"
        assert message.attachments[0].url.startswith("/uploads/messages/")
        assert thread.messages == [message]

    @pytest.mark.asyncio
    async def test_send_and_load(self, make_client, users):
        parent_thread = ConversationThread(make_client("p1"), "p1", "c1")
        await parent_thread.send("  Guten Tag  ")

        caregiver_thread = ConversationThread(make_client("c1"), "c1", "p1")
        messages = await caregiver_thread.load()

        assert [m.body for m in messages] == ["Guten Tag"]
        assert messages[0].read_by == ["p1"]
        assert caregiver_thread.error is None

    @pytest.mark.asyncio
    async def test_failed_load_keeps_messages(self, recording_client):
        client, _ = recording_client("p1", unreachable)
        thread = ConversationThread(client, "p1", "c1")
        thread.messages = [_summary("c1--p1", ["p1"]).last_message]

        messages = await thread.load()

        assert len(messages) == 1
        assert thread.error == "Messages could not be loaded."

    @pytest.mark.asyncio
    async def test_malformed_messages_keep_state(self, recording_client):
        client, _ = recording_client("p1", lambda r: httpx.Response(200, json=[{"body": "Hallo"}]))
        thread = ConversationThread(client, "p1", "c1")
        thread.messages = [_summary("c1--p1", ["p1"]).last_message]

        messages = await thread.load()

        assert len(messages) == 1
        assert thread.error == "Messages could not be loaded."


class TestConversationInbox:
    """Test ConversationInbox read tracking and deletion."""

    def test_unread_uses_read_by_only(self, recording_client):
        client, _ = recording_client("p1")
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [
            _summary("c1--p1", ["c1"]),
            _summary("c2--p1", ["c2", "p1"]),
            # Sent by the viewer but not yet in read_by
            _summary("p1--x9", ["x9"]),
        ]

        assert [inbox.is_unread(s) for s in inbox.conversations] == [True, False, True]
        assert inbox.unread_count() == 2

    @pytest.mark.asyncio
    async def test_mark_read_twice_is_idempotent(self, recording_client):
        client, transport = recording_client(
            "p1",
            lambda r: httpx.Response(200, json={"conversationId": "c1--p1", "readBy": ["c1", "p1"]}),
        )
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        assert await inbox.mark_read("c1--p1")
        assert await inbox.mark_read("c1--p1")

        assert inbox.conversations[0].read_by == ["c1", "p1"]
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_mark_read_failure(self, recording_client):
        client, _ = recording_client("p1", unreachable)
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        assert await inbox.mark_read("c1--p1") is False
        assert inbox.conversations[0].read_by == ["c1"]

    @pytest.mark.asyncio
    async def test_delete_without_confirmation(self, recording_client):
        """Declining leaves the list alone and sends nothing."""
        client, transport = recording_client("p1")
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        assert await inbox.delete("c1--p1", confirm=lambda: False) is False

        assert len(inbox.conversations) == 1
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_delete_with_async_confirmation(self, recording_client):
        client, transport = recording_client("p1", lambda r: httpx.Response(204))
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"]), _summary("c2--p1", ["c2"])]

        async def confirm():
            return True

        assert await inbox.delete("c1--p1", confirm=confirm)

        assert [s.conversation_id for s in inbox.conversations] == ["c2--p1"]
        assert transport.requests[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_entry(self, recording_client):
        """Entries are only removed after the server acknowledges."""
        client, _ = recording_client(
            "p1", lambda r: httpx.Response(403, json={"detail": "You are not part of this conversation."})
        )
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        with pytest.raises(ApiError):
            await inbox.delete("c1--p1", confirm=lambda: True)

        assert len(inbox.conversations) == 1
        assert inbox.error == "You are not part of this conversation."

    @pytest.mark.asyncio
    async def test_refresh_and_read_flow(self, make_client, users):
        """A new message is unread for the recipient until marked read."""
        await ConversationThread(make_client("p1"), "p1", "c1").send("Ist ein Platz frei?")
        await ConversationThread(make_client("p2"), "p2", "c1").send("Hallo")
        inbox = ConversationInbox(make_client("c1"), "c1")

        conversations = await inbox.refresh()

        assert [s.conversation_id for s in conversations] == ["c1--p2", "c1--p1"]
        assert inbox.unread_count() == 2

        await inbox.mark_read("c1--p1")
        assert inbox.unread_count() == 1
        await inbox.refresh()
        assert inbox.unread_count() == 1

        profiles = await inbox.load_partner_profiles()
        assert set(profiles) == {"p1", "p2"}
        assert profiles["p1"].name == "Paul Weber"

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_list(self, recording_client):
        client, _ = recording_client("p1", unreachable)
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        await inbox.refresh()

        assert len(inbox.conversations) == 1
        assert inbox.error == "Conversations could not be loaded."

    @pytest.mark.asyncio
    async def test_non_json_refresh_keeps_list(self, recording_client):
        client, _ = recording_client("p1", lambda r: httpx.Response(200, text="<html>proxy</html>"))
        inbox = ConversationInbox(client, "p1")
        inbox.conversations = [_summary("c1--p1", ["c1"])]

        await inbox.refresh()

        assert len(inbox.conversations) == 1
        assert inbox.error == "Conversations could not be loaded."
