"""TaskFlow core: team chat, presence and claim-with-cooldown allocation."""

from .app import Application, IApplication
from .chat import ChatService, IChatService
from .claims import (
    ClaimAllocator,
    ClaimSettingsStore,
    HistoryService,
    IClaimAllocator,
    WorkQueue,
)
from .members import MemberService
from .models import (
    ChatGroup,
    ClaimedItem,
    ClaimResult,
    ClaimSettings,
    EventType,
    HistoryEntry,
    Message,
    Principal,
    QueuedItem,
    RealtimeEvent,
    User,
)
from .realtime import PresenceRegistry, RoomBroadcaster, TypingIndicatorStore
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "User",
    "Principal",
    "Message",
    "ChatGroup",
    "QueuedItem",
    "ClaimedItem",
    "HistoryEntry",
    "ClaimSettings",
    "ClaimResult",
    "EventType",
    "RealtimeEvent",
    # Components
    "IStorage",
    "Storage",
    "PresenceRegistry",
    "RoomBroadcaster",
    "TypingIndicatorStore",
    "IChatService",
    "ChatService",
    "MemberService",
    "WorkQueue",
    "ClaimSettingsStore",
    "IClaimAllocator",
    "ClaimAllocator",
    "HistoryService",
]
