"""RoomBroadcaster implementation for room-scoped fan-out."""

from typing import Protocol

from ..logging_config import get_logger
from ..models import EventType, RealtimeEvent
from .connection import IConnection
from .presence import PresenceRegistry

logger = get_logger(__name__)


class IBroadcaster(Protocol):
    """Room- and team-scoped event delivery."""

    async def broadcast(
        self,
        room_id: str,
        event: RealtimeEvent,
        exclude: IConnection | None = None,
    ) -> int:
        """Hand an event to every connection in a room. Returns deliveries."""
        ...

    async def broadcast_team(
        self,
        team_id: str,
        event: RealtimeEvent,
        exclude: IConnection | None = None,
    ) -> int:
        """Hand an event to every connection of a team. Returns deliveries."""
        ...


class RoomBroadcaster:
    """In-process room membership and best-effort delivery.

    Delivery only enqueues on each connection, so broadcast order per room is
    the order in which broadcast() is called. A failing recipient is logged and
    skipped; it never fails the caller.
    """

    def __init__(self, presence: PresenceRegistry):
        self._presence = presence
        self._connections: dict[str, IConnection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}

    @property
    def presence(self) -> PresenceRegistry:
        return self._presence

    async def connect(self, conn: IConnection) -> None:
        """Register presence; announce the user if this is their first connection."""
        first = self._presence.register(conn)
        logger.info(
            "Client connected",
            extra={"context": {"user_id": conn.user_id, "team_id": conn.team_id}},
        )
        if first:
            await self.broadcast_team(
                conn.team_id,
                RealtimeEvent(
                    type=EventType.USER_ONLINE,
                    team_id=conn.team_id,
                    payload={"userId": conn.user_id},
                ),
                exclude=conn,
            )

    async def disconnect(self, conn: IConnection) -> None:
        """Leave every room, deregister, announce offline on last connection."""
        for room_id in list(self._memberships.get(conn.id, ())):
            self.leave(conn, room_id)
        self._connections.pop(conn.id, None)

        last = self._presence.unregister(conn)
        logger.info(
            "Client disconnected",
            extra={"context": {"user_id": conn.user_id, "team_id": conn.team_id}},
        )
        if last:
            await self.broadcast_team(
                conn.team_id,
                RealtimeEvent(
                    type=EventType.USER_OFFLINE,
                    team_id=conn.team_id,
                    payload={"userId": conn.user_id},
                ),
            )

    def join(self, conn: IConnection, room_id: str) -> bool:
        """Add a connection to a room. False if it was already a member."""
        members = self._rooms.setdefault(room_id, set())
        if conn.id in members:
            return False
        members.add(conn.id)
        self._connections[conn.id] = conn
        self._memberships.setdefault(conn.id, set()).add(room_id)
        return True

    def leave(self, conn: IConnection, room_id: str) -> bool:
        """Remove a connection from a room. False if it was not a member."""
        members = self._rooms.get(room_id)
        if not members or conn.id not in members:
            return False
        members.discard(conn.id)
        if not members:
            del self._rooms[room_id]

        rooms = self._memberships.get(conn.id)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._memberships[conn.id]
                self._connections.pop(conn.id, None)
        return True

    def room_members(self, room_id: str) -> list[IConnection]:
        return [self._connections[cid] for cid in self._rooms.get(room_id, ())]

    def rooms_of(self, conn: IConnection) -> set[str]:
        return set(self._memberships.get(conn.id, ()))

    async def broadcast(
        self,
        room_id: str,
        event: RealtimeEvent,
        exclude: IConnection | None = None,
    ) -> int:
        """Hand an event to every connection in a room. Returns deliveries."""
        return self._deliver_all(self.room_members(room_id), event, exclude)

    async def broadcast_team(
        self,
        team_id: str,
        event: RealtimeEvent,
        exclude: IConnection | None = None,
    ) -> int:
        """Hand an event to every connection of a team. Returns deliveries."""
        return self._deliver_all(self._presence.team_connections(team_id), event, exclude)

    def _deliver_all(
        self,
        connections: list[IConnection],
        event: RealtimeEvent,
        exclude: IConnection | None,
    ) -> int:
        delivered = 0
        for conn in connections:
            if exclude is not None and conn.id == exclude.id:
                continue
            # Rooms never span teams; this guards the invariant anyway
            if conn.team_id != event.team_id:
                continue
            try:
                if conn.send(event):
                    delivered += 1
            except Exception as e:
                logger.error(
                    "Error delivering %s to connection %s: %s",
                    event.type.value,
                    conn.id,
                    e,
                )
        return delivered

    def clear(self) -> None:
        self._connections.clear()
        self._rooms.clear()
        self._memberships.clear()
