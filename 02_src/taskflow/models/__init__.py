"""Core data models for TaskFlow."""

from .chat import (
    ChatGroup,
    ChatTarget,
    ChatType,
    DirectTarget,
    GroupTarget,
    Message,
    TypingIndicator,
    parse_chat_target,
)
from .claims import ClaimedItem, ClaimResult, ClaimSettings, HistoryEntry, QueuedItem
from .events import EventType, RealtimeEvent
from .users import Principal, Role, User

__all__ = [
    # Users
    "User",
    "Principal",
    "Role",
    # Chat
    "Message",
    "ChatGroup",
    "ChatTarget",
    "ChatType",
    "DirectTarget",
    "GroupTarget",
    "TypingIndicator",
    "parse_chat_target",
    # Claims
    "QueuedItem",
    "ClaimedItem",
    "HistoryEntry",
    "ClaimSettings",
    "ClaimResult",
    # Events
    "EventType",
    "RealtimeEvent",
]
