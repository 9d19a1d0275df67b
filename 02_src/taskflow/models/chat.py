"""Chat-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

from ..errors import ValidationError

ChatType = Literal["direct", "group"]


@dataclass(frozen=True)
class DirectTarget:
    """A one-to-one conversation with another team member."""

    recipient_id: str

    @property
    def chat_type(self) -> ChatType:
        return "direct"


@dataclass(frozen=True)
class GroupTarget:
    """A group conversation."""

    group_id: str

    @property
    def chat_type(self) -> ChatType:
        return "group"


ChatTarget = Union[DirectTarget, GroupTarget]


def parse_chat_target(
    recipient_id: str | None = None, group_id: str | None = None
) -> ChatTarget:
    """Build a ChatTarget from the request's recipient/group pair."""
    if recipient_id and group_id:
        raise ValidationError("Provide either recipientId or groupId, not both")
    if recipient_id:
        return DirectTarget(recipient_id=recipient_id)
    if group_id:
        return GroupTarget(group_id=group_id)
    raise ValidationError("Either recipientId or groupId is required")


@dataclass
class Message:
    """A chat message addressed to exactly one user or one group."""

    id: str
    team_id: str
    sender_id: str
    sender_name: str
    content: str
    created_at: datetime
    recipient_id: str | None = None
    group_id: str | None = None
    sender_avatar: str | None = None
    edited_at: datetime | None = None
    deleted: bool = False
    deleted_at: datetime | None = None
    read_by: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if (self.recipient_id is None) == (self.group_id is None):
            raise ValueError("Message needs exactly one of recipient_id or group_id")

    @property
    def target(self) -> ChatTarget:
        if self.group_id is not None:
            return GroupTarget(group_id=self.group_id)
        return DirectTarget(recipient_id=self.recipient_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "sender": self.sender_id,
            "senderName": self.sender_name,
            "senderPicture": self.sender_avatar,
            "recipient": self.recipient_id,
            "groupId": self.group_id,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "editedAt": self.edited_at.isoformat() if self.edited_at else None,
            "deleted": self.deleted,
            "deletedAt": self.deleted_at.isoformat() if self.deleted_at else None,
            "readBy": list(self.read_by),
        }


@dataclass
class ChatGroup:
    """A named group chat inside a team."""

    id: str
    team_id: str
    name: str
    created_at: datetime
    members: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "name": self.name,
            "members": list(self.members),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class TypingIndicator:
    """Ephemeral "is typing" marker; never persisted."""

    user_id: str
    chat_id: str
    chat_type: ChatType
    sender_name: str
    timestamp: float  # seconds, from the store's clock

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "chatId": self.chat_id,
            "chatType": self.chat_type,
            "senderName": self.sender_name,
            "timestamp": self.timestamp,
        }
