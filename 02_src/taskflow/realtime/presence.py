"""PresenceRegistry implementation."""

from ..logging_config import get_logger
from .connection import IConnection

logger = get_logger(__name__)


class PresenceRegistry:
    """Tracks which users are connected, per team.

    A user may hold several connections (tabs); they count as online while
    at least one remains.
    """

    def __init__(self) -> None:
        self._connections: dict[str, IConnection] = {}
        self._by_user: dict[str, set[str]] = {}
        self._by_team: dict[str, set[str]] = {}

    def register(self, conn: IConnection) -> bool:
        """Register a connection. True if it is the user's first one."""
        if conn.id in self._connections:
            return False
        self._connections[conn.id] = conn
        user_conns = self._by_user.setdefault(conn.user_id, set())
        first = not user_conns
        user_conns.add(conn.id)
        self._by_team.setdefault(conn.team_id, set()).add(conn.id)
        logger.debug(
            "Connection registered",
            extra={"context": {"connection": conn.id, "user_id": conn.user_id}},
        )
        return first

    def unregister(self, conn: IConnection) -> bool:
        """Remove a connection. True if the user has no connections left."""
        if self._connections.pop(conn.id, None) is None:
            return False

        team_conns = self._by_team.get(conn.team_id)
        if team_conns is not None:
            team_conns.discard(conn.id)
            if not team_conns:
                del self._by_team[conn.team_id]

        user_conns = self._by_user.get(conn.user_id)
        if user_conns is None:
            return False
        user_conns.discard(conn.id)
        if user_conns:
            return False
        del self._by_user[conn.user_id]
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self._by_user

    def online_users(self, team_id: str) -> list[str]:
        """User ids of a team with at least one live connection."""
        return sorted(
            {self._connections[cid].user_id for cid in self._by_team.get(team_id, ())}
        )

    def team_connections(self, team_id: str) -> list[IConnection]:
        return [self._connections[cid] for cid in self._by_team.get(team_id, ())]

    def user_connections(self, user_id: str) -> list[IConnection]:
        return [self._connections[cid] for cid in self._by_user.get(user_id, ())]

    def clear(self) -> None:
        self._connections.clear()
        self._by_user.clear()
        self._by_team.clear()
