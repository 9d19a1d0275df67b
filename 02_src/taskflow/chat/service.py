"""ChatService implementation."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..config import MAX_MESSAGE_LENGTH, TEAM_CHAT_NAME
from ..errors import (
    NotFoundError,
    PermissionDeniedError,
    TransportError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import ChatGroup, ChatTarget, DirectTarget, GroupTarget, Message, User
from ..storage import IStorage

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def _clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message content exceeds {MAX_MESSAGE_LENGTH} characters"
        )
    return text


class IChatService(Protocol):
    """Validating and persisting chat messages. Transport-agnostic."""

    async def send_message(
        self, sender_id: str, team_id: str, content: str, target: ChatTarget
    ) -> Message:
        """Persist a new message and return it with its generated id."""
        ...

    async def list_messages(
        self,
        team_id: str,
        target: ChatTarget,
        requester_id: str,
        limit: int | None = None,
    ) -> list[Message]:
        """Most recent messages of a chat, oldest first."""
        ...

    async def edit_message(
        self, team_id: str, message_id: str, new_content: str, requester_id: str
    ) -> Message:
        """Replace the content of the requester's own message."""
        ...

    async def delete_message(
        self, team_id: str, message_id: str, requester_id: str
    ) -> Message:
        """Soft-delete the requester's own message."""
        ...

    async def mark_read(
        self, team_id: str, message_id: str, requester_id: str
    ) -> tuple[Message, bool]:
        """Add the requester to readBy. The flag is False if already present."""
        ...

    async def get_or_create_group_chat(
        self, team_id: str, requester_id: str
    ) -> ChatGroup:
        """Return the team's group chat, creating it on first access."""
        ...


class ChatService:
    """Chat operations over IStorage. Broadcasting is left to the caller."""

    def __init__(self, storage: IStorage, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self._storage = storage
        self._history_limit = history_limit

    async def require_member(self, team_id: str, user_id: str) -> User:
        """Resolve a user of the team; other teams' users are not found."""
        user = await self._storage.get_user(user_id)
        if user is None or user.team_id != team_id:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def require_group(self, team_id: str, group_id: str) -> ChatGroup:
        group = await self._storage.get_group(team_id, group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    async def validate_target(
        self, team_id: str, target: ChatTarget, requester_id: str
    ) -> None:
        """Check the target exists inside the requester's team."""
        if isinstance(target, DirectTarget):
            if target.recipient_id == requester_id:
                raise ValidationError("Cannot open a direct chat with yourself")
            await self.require_member(team_id, target.recipient_id)
        else:
            await self.require_group(team_id, target.group_id)

    async def send_message(
        self, sender_id: str, team_id: str, content: str, target: ChatTarget
    ) -> Message:
        """Persist a new message and return it with its generated id."""
        text = _clean_content(content)
        sender = await self.require_member(team_id, sender_id)
        await self.validate_target(team_id, target, sender_id)

        message = Message(
            id=uuid.uuid4().hex,
            team_id=team_id,
            sender_id=sender.id,
            sender_name=sender.name,
            sender_avatar=sender.avatar_url,
            content=text,
            created_at=datetime.now(timezone.utc),
            recipient_id=(
                target.recipient_id if isinstance(target, DirectTarget) else None
            ),
            group_id=target.group_id if isinstance(target, GroupTarget) else None,
        )
        await self._storage.save_message(message)

        logger.info(
            "Message sent",
            extra={
                "context": {
                    "message_id": message.id,
                    "team_id": team_id,
                    "chat_type": target.chat_type,
                }
            },
        )
        return message

    async def list_messages(
        self,
        team_id: str,
        target: ChatTarget,
        requester_id: str,
        limit: int | None = None,
    ) -> list[Message]:
        """Most recent messages of a chat, oldest first."""
        if limit is None or limit > self._history_limit:
            limit = self._history_limit
        if limit < 1:
            raise ValidationError("limit must be at least 1")

        if isinstance(target, DirectTarget):
            return await self._storage.list_direct_messages(
                team_id, requester_id, target.recipient_id, limit
            )

        await self.require_group(team_id, target.group_id)
        return await self._storage.list_group_messages(
            team_id, target.group_id, limit
        )

    async def _require_own_message(
        self, team_id: str, message_id: str, requester_id: str
    ) -> Message:
        message = await self._storage.get_message(team_id, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.sender_id != requester_id:
            raise PermissionDeniedError("Only the sender can change this message")
        return message

    async def edit_message(
        self, team_id: str, message_id: str, new_content: str, requester_id: str
    ) -> Message:
        """Replace the content of the requester's own message."""
        text = _clean_content(new_content)
        message = await self._require_own_message(team_id, message_id, requester_id)
        if message.deleted:
            raise ValidationError("Deleted messages cannot be edited")

        edited_at = datetime.now(timezone.utc)
        if not await self._storage.update_message_content(
            team_id, message_id, text, edited_at
        ):
            # Deleted between the read and the update
            raise ValidationError("Deleted messages cannot be edited")

        message.content = text
        message.edited_at = edited_at
        return message

    async def delete_message(
        self, team_id: str, message_id: str, requester_id: str
    ) -> Message:
        """Soft-delete the requester's own message. Repeated deletes are no-ops."""
        message = await self._require_own_message(team_id, message_id, requester_id)
        if message.deleted:
            return message

        deleted_at = datetime.now(timezone.utc)
        if await self._storage.mark_message_deleted(team_id, message_id, deleted_at):
            message.deleted = True
            message.deleted_at = deleted_at
            return message

        refreshed = await self._storage.get_message(team_id, message_id)
        if refreshed is None:
            raise NotFoundError(f"Message {message_id} not found")
        return refreshed

    async def mark_read(
        self, team_id: str, message_id: str, requester_id: str
    ) -> tuple[Message, bool]:
        """Add the requester to readBy. The flag is False if already present."""
        message = await self._storage.get_message(team_id, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.recipient_id is not None and requester_id not in (
            message.sender_id,
            message.recipient_id,
        ):
            # Outsiders must not learn that a direct message exists
            raise NotFoundError(f"Message {message_id} not found")

        added = await self._storage.add_read_receipt(
            message_id, requester_id, datetime.now(timezone.utc)
        )
        if added:
            message.read_by.append(requester_id)
        return message, added

    async def mark_chat_read(
        self, team_id: str, target: ChatTarget, requester_id: str
    ) -> int:
        """Mark every message of a chat as read by the requester."""
        now = datetime.now(timezone.utc)
        if isinstance(target, DirectTarget):
            return await self._storage.mark_direct_chat_read(
                team_id, requester_id, target.recipient_id, now
            )
        await self.require_group(team_id, target.group_id)
        return await self._storage.mark_group_chat_read(
            team_id, requester_id, target.group_id, now
        )

    async def unread_counts(self, team_id: str, user_id: str) -> dict[str, int]:
        """Unread counts keyed by the other user's id or the group id."""
        return await self._storage.count_unread(team_id, user_id)

    async def get_or_create_group_chat(
        self, team_id: str, requester_id: str
    ) -> ChatGroup:
        """Return the team's group chat, creating it on first access."""
        group = await self._storage.find_group(team_id, TEAM_CHAT_NAME)
        if group is not None:
            return group

        candidate = ChatGroup(
            id=uuid.uuid4().hex,
            team_id=team_id,
            name=TEAM_CHAT_NAME,
            created_at=datetime.now(timezone.utc),
            members=[requester_id],
        )
        if await self._storage.create_group(candidate):
            logger.info(
                "Team chat created",
                extra={"context": {"team_id": team_id, "group_id": candidate.id}},
            )
            return candidate

        # Another request created it first
        group = await self._storage.find_group(team_id, TEAM_CHAT_NAME)
        if group is None:
            raise TransportError("Team chat missing after duplicate insert")
        return group

    async def add_group_member(
        self, team_id: str, group_id: str, member_id: str
    ) -> ChatGroup:
        """Add a team member to a group (set semantics)."""
        await self.require_group(team_id, group_id)
        await self.require_member(team_id, member_id)
        await self._storage.add_group_member(
            group_id, member_id, datetime.now(timezone.utc)
        )
        return await self.require_group(team_id, group_id)
