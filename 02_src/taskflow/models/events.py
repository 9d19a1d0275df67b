"""Real-time event models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class EventType(str, Enum):
    """Event names pushed to connected clients."""

    MESSAGE_SENT = "message-sent"
    MESSAGE_EDITED = "message-edited"
    MESSAGE_DELETED = "message-deleted"
    MESSAGE_READ = "message-read"
    TYPING = "typing"
    USER_ONLINE = "user-online"
    USER_OFFLINE = "user-offline"
    QUEUE_CHANGED = "queue-changed"


@dataclass
class RealtimeEvent:
    """An event fanned out to a room or a whole team."""

    type: EventType
    team_id: str
    payload: dict
    room_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "roomId": self.room_id,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }
