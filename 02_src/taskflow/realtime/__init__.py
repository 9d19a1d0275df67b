"""Real-time presence, rooms and typing indicators."""

from .connection import IConnection, WebSocketConnection
from .presence import PresenceRegistry
from .room_id import direct_room_id, group_room_id, room_for_message, room_for_target
from .rooms import IBroadcaster, RoomBroadcaster
from .typing_indicators import TypingIndicatorStore

__all__ = [
    "IConnection",
    "WebSocketConnection",
    "PresenceRegistry",
    "IBroadcaster",
    "RoomBroadcaster",
    "TypingIndicatorStore",
    "direct_room_id",
    "group_room_id",
    "room_for_message",
    "room_for_target",
]
