"""Inbox and thread state for direct conversations."""

import inspect
import logging
from typing import Awaitable, Callable

from kleinewelt.client.attachments import SelectedFile, assemble_attachments
from kleinewelt.client.http import ClientError, KleineWeltClient, user_message
from kleinewelt.client.profiles import fetch_profiles
from kleinewelt_models import (
    ConversationSummary,
    Message,
    Profile,
    derive_conversation_id,
    has_content,
)

logger = logging.getLogger(__name__)

Confirm = Callable[[], bool | Awaitable[bool]]


class EmptyMessageError(ValueError):
    """Raised when a message has neither text nor attachments."""

    def __init__(self):
        super().__init__("Please enter a message or attach a file.")


class ConversationInbox:
    """The caller's conversations and their read state.

    Unread means the viewer is not in ``read_by`` of the latest message.
    """

    def __init__(self, client: KleineWeltClient, user_id: str):
        self.client = client
        self.user_id = user_id
        self.conversations: list[ConversationSummary] = []
        self.error: str | None = None

    async def refresh(self) -> list[ConversationSummary]:
        try:
            self.conversations = await self.client.list_conversations()
            self.error = None
        except ClientError as e:
            logger.warning(f"Could not load conversations for {self.user_id}: {e}")
            self.error = user_message(e, "Conversations could not be loaded.")
        return self.conversations

    def find(self, conversation_id: str) -> ConversationSummary | None:
        for summary in self.conversations:
            if summary.conversation_id == conversation_id:
                return summary
        return None

    def is_unread(self, summary: ConversationSummary) -> bool:
        return self.user_id not in summary.read_by

    def unread_count(self) -> int:
        return sum(1 for summary in self.conversations if self.is_unread(summary))

    async def mark_read(self, conversation_id: str) -> bool:
        """Tell the server the viewer has seen the thread, then update locally."""
        try:
            await self.client.mark_conversation_read(conversation_id)
        except ClientError as e:
            logger.warning(f"Could not mark {conversation_id} as read: {e}")
            return False

        summary = self.find(conversation_id)
        if summary and self.user_id not in summary.read_by:
            summary.read_by.append(self.user_id)
        return True

    async def delete(self, conversation_id: str, confirm: Confirm) -> bool:
        """Delete a conversation after the user confirms.

        Returns:
            False if the user declined; nothing is sent in that case

        """
        answer = confirm()
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False

        try:
            await self.client.delete_conversation(conversation_id)
        except ClientError as e:
            logger.error(f"Failed to delete conversation {conversation_id}: {e}")
            self.error = user_message(e, "The conversation could not be deleted.")
            raise

        self.conversations = [
            s for s in self.conversations if s.conversation_id != conversation_id
        ]
        self.error = None
        return True

    def partner_ids(self) -> list[str]:
        partners: list[str] = []
        for summary in self.conversations:
            for participant in summary.participants:
                if participant != self.user_id and participant not in partners:
                    partners.append(participant)
        return partners

    async def load_partner_profiles(self) -> dict[str, Profile | None]:
        return await fetch_profiles(self.client, self.partner_ids())


class ConversationThread:
    """Direct thread between the viewer and one partner."""

    def __init__(
        self,
        client: KleineWeltClient,
        user_id: str,
        partner_id: str,
        max_attachment_bytes: int | None = None,
    ):
        self.client = client
        self.user_id = user_id
        self.partner_id = partner_id
        self.conversation_id = derive_conversation_id(user_id, partner_id)
        self.max_attachment_bytes = max_attachment_bytes
        self.messages: list[Message] = []
        self.error: str | None = None

    async def load(self) -> list[Message]:
        try:
            self.messages = await self.client.list_messages(self.conversation_id)
            self.error = None
        except ClientError as e:
            logger.warning(f"Could not load {self.conversation_id}: {e}")
            self.error = user_message(e, "Messages could not be loaded.")
        return self.messages

    async def send(self, body: str, files: list[SelectedFile] | tuple[SelectedFile, ...] = ()) -> Message:
        """Send a message; text, files or both.

        Raises:
            EmptyMessageError: Before any I/O, if there is nothing to send
            AttachmentReadError: If a file cannot be read
            ClientError: If the server rejects or cannot receive the message

        """
        if not has_content(body, list(files)):
            raise EmptyMessageError()

        attachments = await assemble_attachments(files, max_bytes=self.max_attachment_bytes)
        try:
            message = await self.client.send_message(
                self.conversation_id,
                recipient_id=self.partner_id,
                body=(body or "").strip(),
                attachments=attachments,
            )
        except ClientError as e:
            logger.error(f"Failed to send message to {self.conversation_id}: {e}")
            self.error = user_message(e, "The message could not be sent.")
            raise

        self.messages.append(message)
        self.error = None
        return message
