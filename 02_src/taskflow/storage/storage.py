"""SQLite storage implementation."""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Protocol, Sequence

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    ChatGroup,
    ClaimedItem,
    ClaimSettings,
    HistoryEntry,
    Message,
    QueuedItem,
    User,
)


def _ts(value: datetime | None) -> str | None:
    """Serialize a datetime as fixed-width UTC ISO-8601 (sorts lexically)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _placeholders(count: int) -> str:
    return ",".join("?" * count)


def _values_clause(rows: int, columns: int) -> str:
    row = f"({_placeholders(columns)})"
    return ",".join([row] * rows)


class IStorage(Protocol):
    """Persistent storage for all team-scoped data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Users
    async def save_user(self, user: User) -> None:
        """Insert or update a user."""
        ...

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        ...

    async def list_users(self, team_id: str) -> list[User]:
        """List the users of a team."""
        ...

    # Messages
    async def save_message(self, message: Message) -> None:
        """Insert a new message."""
        ...

    async def get_message(self, team_id: str, message_id: str) -> Message | None:
        """Get a message of a team."""
        ...

    async def list_direct_messages(
        self, team_id: str, user_a: str, user_b: str, limit: int
    ) -> list[Message]:
        """Most recent direct messages between two users, oldest first."""
        ...

    async def list_group_messages(
        self, team_id: str, group_id: str, limit: int
    ) -> list[Message]:
        """Most recent messages of a group, oldest first."""
        ...

    async def update_message_content(
        self, team_id: str, message_id: str, content: str, edited_at: datetime
    ) -> bool:
        """Replace the content of a live message."""
        ...

    async def mark_message_deleted(
        self, team_id: str, message_id: str, deleted_at: datetime
    ) -> bool:
        """Soft-delete a message."""
        ...

    async def add_read_receipt(
        self, message_id: str, user_id: str, read_at: datetime
    ) -> bool:
        """Record that a user read a message. False if already recorded."""
        ...

    async def mark_direct_chat_read(
        self, team_id: str, reader_id: str, other_id: str, read_at: datetime
    ) -> int:
        """Add receipts for every message other_id sent to reader_id."""
        ...

    async def mark_group_chat_read(
        self, team_id: str, reader_id: str, group_id: str, read_at: datetime
    ) -> int:
        """Add receipts for every group message not sent by reader_id."""
        ...

    async def count_unread(self, team_id: str, user_id: str) -> dict[str, int]:
        """Unread counts keyed by other user id (direct) or group id."""
        ...

    # Chat groups
    async def create_group(self, group: ChatGroup) -> bool:
        """Insert a group. False if the team already has a group with that name."""
        ...

    async def get_group(self, team_id: str, group_id: str) -> ChatGroup | None:
        """Get a group of a team."""
        ...

    async def find_group(self, team_id: str, name: str) -> ChatGroup | None:
        """Find a group of a team by name."""
        ...

    async def add_group_member(
        self, group_id: str, user_id: str, added_at: datetime
    ) -> bool:
        """Add a member to a group. False if already a member."""
        ...

    # Work queue
    async def add_queued_items(self, items: Sequence[QueuedItem]) -> None:
        """Insert queued items in order."""
        ...

    async def list_queued_items(self, team_id: str) -> list[QueuedItem]:
        """Unreserved queued items of a team, oldest first."""
        ...

    async def delete_queued_item(self, team_id: str, item_id: str) -> bool:
        """Delete one unreserved queued item."""
        ...

    async def reserve_queued_items(
        self, team_id: str, limit: int, token: str
    ) -> list[QueuedItem]:
        """Atomically stamp `token` on up to `limit` unreserved items, oldest first."""
        ...

    async def delete_reserved_items(self, token: str) -> int:
        """Delete the queued items holding a reservation token."""
        ...

    async def release_reservation(self, token: str) -> int:
        """Clear a reservation token, returning the items to the queue."""
        ...

    async def reconcile_reservations(self) -> tuple[int, int]:
        """Resolve reservations left by interrupted claims: (removed, released)."""
        ...

    # Claimed items
    async def save_claimed_items(self, items: Sequence[ClaimedItem]) -> None:
        """Insert claimed items."""
        ...

    async def list_claimed_items(self, team_id: str, user_id: str) -> list[ClaimedItem]:
        """Claimed items of a user, newest first."""
        ...

    async def delete_claimed_items(self, team_id: str, user_id: str) -> int:
        """Delete every claimed item of a user."""
        ...

    async def delete_claimed_by_reservation(self, token: str) -> int:
        """Delete claimed items written under a reservation token."""
        ...

    async def get_active_cooldown(
        self, team_id: str, user_id: str, now: datetime
    ) -> datetime | None:
        """Latest cooldown_until after `now` among the user's claimed items."""
        ...

    # History
    async def save_history_entries(self, entries: Sequence[HistoryEntry]) -> None:
        """Append history entries."""
        ...

    async def list_history(
        self,
        team_id: str,
        user_id: str | None = None,
        search: str | None = None,
        day: date | None = None,
        limit: int = 500,
    ) -> list[HistoryEntry]:
        """History of a team, newest first, with optional filters."""
        ...

    # Claim settings
    async def get_claim_settings(self, team_id: str) -> ClaimSettings | None:
        """Get the claim settings of a team."""
        ...

    async def ensure_claim_settings(self, defaults: ClaimSettings) -> ClaimSettings:
        """Insert `defaults` unless the team has settings; return the stored record."""
        ...

    async def save_claim_settings(self, settings: ClaimSettings) -> ClaimSettings:
        """Upsert the claim settings of a team."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


_MESSAGE_COLUMNS = (
    "id, team_id, sender_id, sender_name, sender_avatar, recipient_id, group_id, "
    "content, created_at, edited_at, deleted, deleted_at"
)
_QUEUED_COLUMNS = "id, team_id, content, added_by, added_at, reservation"
_CLAIMED_COLUMNS = (
    "id, team_id, content, claimed_by, claimed_by_name, claimed_at, "
    "cooldown_until, reservation"
)
_HISTORY_COLUMNS = "id, team_id, content, claimed_by, claimed_by_user_id, claimed_at"
_USER_COLUMNS = "id, team_id, name, email, role, avatar_url, created_at"


def _row_to_user(row: Sequence) -> User:
    return User(
        id=row[0],
        team_id=row[1],
        name=row[2],
        email=row[3],
        role=row[4],
        avatar_url=row[5],
        created_at=_dt(row[6]),
    )


def _row_to_message(row: Sequence) -> Message:
    return Message(
        id=row[0],
        team_id=row[1],
        sender_id=row[2],
        sender_name=row[3],
        sender_avatar=row[4],
        recipient_id=row[5],
        group_id=row[6],
        content=row[7],
        created_at=_dt(row[8]),
        edited_at=_dt(row[9]),
        deleted=bool(row[10]),
        deleted_at=_dt(row[11]),
    )


def _row_to_queued(row: Sequence) -> QueuedItem:
    return QueuedItem(
        id=row[0],
        team_id=row[1],
        content=row[2],
        added_by=row[3],
        added_at=_dt(row[4]),
        reservation=row[5],
    )


def _row_to_claimed(row: Sequence) -> ClaimedItem:
    return ClaimedItem(
        id=row[0],
        team_id=row[1],
        content=row[2],
        claimed_by=row[3],
        claimed_by_name=row[4],
        claimed_at=_dt(row[5]),
        cooldown_until=_dt(row[6]),
        reservation=row[7],
    )


def _row_to_history(row: Sequence) -> HistoryEntry:
    return HistoryEntry(
        id=row[0],
        team_id=row[1],
        content=row[2],
        claimed_by=row[3],
        claimed_by_user_id=row[4],
        claimed_at=_dt(row[5]),
    )


def _row_to_settings(row: Sequence) -> ClaimSettings:
    return ClaimSettings(
        team_id=row[0],
        line_count=int(row[1]),
        cooldown_minutes=float(row[2]),
        updated_at=_dt(row[3]),
    )


class Storage:
    """SQLite storage implementation.

    The connection runs in autocommit mode, so every statement is its own
    transaction. Multi-row writes are issued as a single statement to keep
    them all-or-nothing.
    """

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Users
    async def save_user(self, user: User) -> None:
        """Insert or update a user."""
        await self.conn.execute(
            """
            INSERT INTO users (id, team_id, name, email, role, avatar_url, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                team_id = excluded.team_id,
                name = excluded.name,
                email = excluded.email,
                role = excluded.role,
                avatar_url = excluded.avatar_url
            """,
            (
                user.id,
                user.team_id,
                user.name,
                user.email,
                user.role,
                user.avatar_url,
                _ts(user.created_at),
            ),
        )

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        cursor = await self.conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        cursor = await self.conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email,)
        )
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def list_users(self, team_id: str) -> list[User]:
        """List the users of a team."""
        cursor = await self.conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE team_id = ? ORDER BY name",
            (team_id,),
        )
        return [_row_to_user(row) for row in await cursor.fetchall()]

    # Messages
    async def save_message(self, message: Message) -> None:
        """Insert a new message."""
        await self.conn.execute(
            f"""
            INSERT INTO messages ({_MESSAGE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.team_id,
                message.sender_id,
                message.sender_name,
                message.sender_avatar,
                message.recipient_id,
                message.group_id,
                message.content,
                _ts(message.created_at),
                _ts(message.edited_at),
                int(message.deleted),
                _ts(message.deleted_at),
            ),
        )

    async def _attach_read_receipts(self, messages: list[Message]) -> list[Message]:
        if not messages:
            return messages
        by_id = {msg.id: msg for msg in messages}
        cursor = await self.conn.execute(
            f"""
            SELECT message_id, user_id FROM message_reads
            WHERE message_id IN ({_placeholders(len(by_id))})
            ORDER BY read_at ASC
            """,
            list(by_id),
        )
        for message_id, user_id in await cursor.fetchall():
            by_id[message_id].read_by.append(user_id)
        return messages

    async def get_message(self, team_id: str, message_id: str) -> Message | None:
        """Get a message of a team."""
        cursor = await self.conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ? AND team_id = ?",
            (message_id, team_id),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        messages = await self._attach_read_receipts([_row_to_message(row)])
        return messages[0]

    async def _list_recent_messages(
        self, where: str, params: Iterable, limit: int
    ) -> list[Message]:
        cursor = await self.conn.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS} FROM messages
            WHERE {where}
            ORDER BY created_at DESC, seq DESC
            LIMIT ?
            """,
            [*params, limit],
        )
        rows = await cursor.fetchall()
        messages = [_row_to_message(row) for row in reversed(rows)]
        return await self._attach_read_receipts(messages)

    async def list_direct_messages(
        self, team_id: str, user_a: str, user_b: str, limit: int
    ) -> list[Message]:
        """Most recent direct messages between two users, oldest first."""
        return await self._list_recent_messages(
            "team_id = ? AND ((sender_id = ? AND recipient_id = ?)"
            " OR (sender_id = ? AND recipient_id = ?))",
            (team_id, user_a, user_b, user_b, user_a),
            limit,
        )

    async def list_group_messages(
        self, team_id: str, group_id: str, limit: int
    ) -> list[Message]:
        """Most recent messages of a group, oldest first."""
        return await self._list_recent_messages(
            "team_id = ? AND group_id = ?", (team_id, group_id), limit
        )

    async def update_message_content(
        self, team_id: str, message_id: str, content: str, edited_at: datetime
    ) -> bool:
        """Replace the content of a live message."""
        cursor = await self.conn.execute(
            """
            UPDATE messages SET content = ?, edited_at = ?
            WHERE id = ? AND team_id = ? AND deleted = 0
            """,
            (content, _ts(edited_at), message_id, team_id),
        )
        return cursor.rowcount == 1

    async def mark_message_deleted(
        self, team_id: str, message_id: str, deleted_at: datetime
    ) -> bool:
        """Soft-delete a message."""
        cursor = await self.conn.execute(
            """
            UPDATE messages SET deleted = 1, deleted_at = ?
            WHERE id = ? AND team_id = ? AND deleted = 0
            """,
            (_ts(deleted_at), message_id, team_id),
        )
        return cursor.rowcount == 1

    async def add_read_receipt(
        self, message_id: str, user_id: str, read_at: datetime
    ) -> bool:
        """Record that a user read a message. False if already recorded."""
        cursor = await self.conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, read_at)
            VALUES (?, ?, ?)
            """,
            (message_id, user_id, _ts(read_at)),
        )
        return cursor.rowcount == 1

    async def mark_direct_chat_read(
        self, team_id: str, reader_id: str, other_id: str, read_at: datetime
    ) -> int:
        """Add receipts for every message other_id sent to reader_id."""
        cursor = await self.conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, read_at)
            SELECT id, ?, ? FROM messages
            WHERE team_id = ? AND sender_id = ? AND recipient_id = ?
            """,
            (reader_id, _ts(read_at), team_id, other_id, reader_id),
        )
        return cursor.rowcount

    async def mark_group_chat_read(
        self, team_id: str, reader_id: str, group_id: str, read_at: datetime
    ) -> int:
        """Add receipts for every group message not sent by reader_id."""
        cursor = await self.conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, read_at)
            SELECT id, ?, ? FROM messages
            WHERE team_id = ? AND group_id = ? AND sender_id != ?
            """,
            (reader_id, _ts(read_at), team_id, group_id, reader_id),
        )
        return cursor.rowcount

    async def count_unread(self, team_id: str, user_id: str) -> dict[str, int]:
        """Unread counts keyed by other user id (direct) or group id."""
        cursor = await self.conn.execute(
            """
            SELECT COALESCE(m.group_id, m.sender_id) AS chat_id, COUNT(*)
            FROM messages m
            WHERE m.team_id = ?
              AND m.sender_id != ?
              AND m.deleted = 0
              AND (m.recipient_id = ? OR m.group_id IS NOT NULL)
              AND NOT EXISTS (
                SELECT 1 FROM message_reads r
                WHERE r.message_id = m.id AND r.user_id = ?
              )
            GROUP BY chat_id
            """,
            (team_id, user_id, user_id, user_id),
        )
        return {row[0]: row[1] for row in await cursor.fetchall()}

    # Chat groups
    async def create_group(self, group: ChatGroup) -> bool:
        """Insert a group. False if the team already has a group with that name."""
        try:
            await self.conn.execute(
                """
                INSERT INTO chat_groups (id, team_id, name, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (group.id, group.team_id, group.name, _ts(group.created_at)),
            )
        except aiosqlite.IntegrityError:
            return False

        for member_id in group.members:
            await self.add_group_member(group.id, member_id, group.created_at)
        return True

    async def _load_group(self, row: Sequence) -> ChatGroup:
        cursor = await self.conn.execute(
            """
            SELECT user_id FROM chat_group_members
            WHERE group_id = ? ORDER BY added_at ASC
            """,
            (row[0],),
        )
        members = [member[0] for member in await cursor.fetchall()]
        return ChatGroup(
            id=row[0],
            team_id=row[1],
            name=row[2],
            created_at=_dt(row[3]),
            members=members,
        )

    async def get_group(self, team_id: str, group_id: str) -> ChatGroup | None:
        """Get a group of a team."""
        cursor = await self.conn.execute(
            """
            SELECT id, team_id, name, created_at FROM chat_groups
            WHERE id = ? AND team_id = ?
            """,
            (group_id, team_id),
        )
        row = await cursor.fetchone()
        return await self._load_group(row) if row else None

    async def find_group(self, team_id: str, name: str) -> ChatGroup | None:
        """Find a group of a team by name."""
        cursor = await self.conn.execute(
            """
            SELECT id, team_id, name, created_at FROM chat_groups
            WHERE team_id = ? AND name = ?
            """,
            (team_id, name),
        )
        row = await cursor.fetchone()
        return await self._load_group(row) if row else None

    async def add_group_member(
        self, group_id: str, user_id: str, added_at: datetime
    ) -> bool:
        """Add a member to a group. False if already a member."""
        cursor = await self.conn.execute(
            """
            INSERT OR IGNORE INTO chat_group_members (group_id, user_id, added_at)
            VALUES (?, ?, ?)
            """,
            (group_id, user_id, _ts(added_at)),
        )
        return cursor.rowcount == 1

    # Work queue
    async def add_queued_items(self, items: Sequence[QueuedItem]) -> None:
        """Insert queued items in order."""
        if not items:
            return
        params: list = []
        for item in items:
            params.extend(
                (
                    item.id,
                    item.team_id,
                    item.content,
                    item.added_by,
                    _ts(item.added_at),
                    item.reservation,
                )
            )
        await self.conn.execute(
            f"INSERT INTO queued_items ({_QUEUED_COLUMNS}) "
            f"VALUES {_values_clause(len(items), 6)}",
            params,
        )

    async def list_queued_items(self, team_id: str) -> list[QueuedItem]:
        """Unreserved queued items of a team, oldest first."""
        cursor = await self.conn.execute(
            f"""
            SELECT {_QUEUED_COLUMNS} FROM queued_items
            WHERE team_id = ? AND reservation IS NULL
            ORDER BY seq ASC
            """,
            (team_id,),
        )
        return [_row_to_queued(row) for row in await cursor.fetchall()]

    async def delete_queued_item(self, team_id: str, item_id: str) -> bool:
        """Delete one unreserved queued item."""
        cursor = await self.conn.execute(
            """
            DELETE FROM queued_items
            WHERE id = ? AND team_id = ? AND reservation IS NULL
            """,
            (item_id, team_id),
        )
        return cursor.rowcount == 1

    async def reserve_queued_items(
        self, team_id: str, limit: int, token: str
    ) -> list[QueuedItem]:
        """Atomically stamp `token` on up to `limit` unreserved items, oldest first.

        Selection and reservation are one UPDATE statement, so two callers can
        never reserve the same row.
        """
        rows = await self.conn.execute_fetchall(
            f"""
            UPDATE queued_items SET reservation = ?
            WHERE seq IN (
                SELECT seq FROM queued_items
                WHERE team_id = ? AND reservation IS NULL
                ORDER BY seq ASC
                LIMIT ?
            )
            RETURNING seq, {_QUEUED_COLUMNS}
            """,
            (token, team_id, limit),
        )
        # RETURNING order is unspecified
        ordered = sorted(rows, key=lambda row: row[0])
        return [_row_to_queued(row[1:]) for row in ordered]

    async def delete_reserved_items(self, token: str) -> int:
        """Delete the queued items holding a reservation token."""
        cursor = await self.conn.execute(
            "DELETE FROM queued_items WHERE reservation = ?", (token,)
        )
        return cursor.rowcount

    async def release_reservation(self, token: str) -> int:
        """Clear a reservation token, returning the items to the queue."""
        cursor = await self.conn.execute(
            "UPDATE queued_items SET reservation = NULL WHERE reservation = ?",
            (token,),
        )
        return cursor.rowcount

    async def reconcile_reservations(self) -> tuple[int, int]:
        """Resolve reservations left by interrupted claims: (removed, released).

        Rows whose token already produced claimed items are removed (the claim
        record wins); any other reservation is released back to the queue.
        Only safe while no claim is in flight, i.e. at startup.
        """
        cursor = await self.conn.execute(
            """
            DELETE FROM queued_items
            WHERE reservation IS NOT NULL
              AND reservation IN (
                SELECT reservation FROM claimed_items WHERE reservation IS NOT NULL
              )
            """
        )
        removed = cursor.rowcount
        cursor = await self.conn.execute(
            "UPDATE queued_items SET reservation = NULL WHERE reservation IS NOT NULL"
        )
        return removed, cursor.rowcount

    # Claimed items
    async def save_claimed_items(self, items: Sequence[ClaimedItem]) -> None:
        """Insert claimed items."""
        if not items:
            return
        params: list = []
        for item in items:
            params.extend(
                (
                    item.id,
                    item.team_id,
                    item.content,
                    item.claimed_by,
                    item.claimed_by_name,
                    _ts(item.claimed_at),
                    _ts(item.cooldown_until),
                    item.reservation,
                )
            )
        await self.conn.execute(
            f"INSERT INTO claimed_items ({_CLAIMED_COLUMNS}) "
            f"VALUES {_values_clause(len(items), 8)}",
            params,
        )

    async def list_claimed_items(self, team_id: str, user_id: str) -> list[ClaimedItem]:
        """Claimed items of a user, newest first."""
        cursor = await self.conn.execute(
            f"""
            SELECT {_CLAIMED_COLUMNS} FROM claimed_items
            WHERE team_id = ? AND claimed_by = ?
            ORDER BY claimed_at DESC, seq ASC
            """,
            (team_id, user_id),
        )
        return [_row_to_claimed(row) for row in await cursor.fetchall()]

    async def delete_claimed_items(self, team_id: str, user_id: str) -> int:
        """Delete every claimed item of a user."""
        cursor = await self.conn.execute(
            "DELETE FROM claimed_items WHERE team_id = ? AND claimed_by = ?",
            (team_id, user_id),
        )
        return cursor.rowcount

    async def delete_claimed_by_reservation(self, token: str) -> int:
        """Delete claimed items written under a reservation token."""
        cursor = await self.conn.execute(
            "DELETE FROM claimed_items WHERE reservation = ?", (token,)
        )
        return cursor.rowcount

    async def get_active_cooldown(
        self, team_id: str, user_id: str, now: datetime
    ) -> datetime | None:
        """Latest cooldown_until after `now` among the user's claimed items."""
        cursor = await self.conn.execute(
            """
            SELECT MAX(cooldown_until) FROM claimed_items
            WHERE team_id = ? AND claimed_by = ? AND cooldown_until > ?
            """,
            (team_id, user_id, _ts(now)),
        )
        row = await cursor.fetchone()
        return _dt(row[0]) if row else None

    # History
    async def save_history_entries(self, entries: Sequence[HistoryEntry]) -> None:
        """Append history entries."""
        if not entries:
            return
        params: list = []
        for entry in entries:
            params.extend(
                (
                    entry.id,
                    entry.team_id,
                    entry.content,
                    entry.claimed_by,
                    entry.claimed_by_user_id,
                    _ts(entry.claimed_at),
                )
            )
        await self.conn.execute(
            f"INSERT INTO history ({_HISTORY_COLUMNS}) "
            f"VALUES {_values_clause(len(entries), 6)}",
            params,
        )

    async def list_history(
        self,
        team_id: str,
        user_id: str | None = None,
        search: str | None = None,
        day: date | None = None,
        limit: int = 500,
    ) -> list[HistoryEntry]:
        """History of a team, newest first, with optional filters."""
        conditions = ["team_id = ?"]
        params: list = [team_id]

        if user_id:
            conditions.append("claimed_by_user_id = ?")
            params.append(user_id)
        if search:
            conditions.append("instr(lower(content), lower(?)) > 0")
            params.append(search)
        if day:
            conditions.append("substr(claimed_at, 1, 10) = ?")
            params.append(day.isoformat())

        params.append(limit)
        cursor = await self.conn.execute(
            f"""
            SELECT {_HISTORY_COLUMNS} FROM history
            WHERE {' AND '.join(conditions)}
            ORDER BY claimed_at DESC, seq ASC
            LIMIT ?
            """,
            params,
        )
        return [_row_to_history(row) for row in await cursor.fetchall()]

    # Claim settings
    async def get_claim_settings(self, team_id: str) -> ClaimSettings | None:
        """Get the claim settings of a team."""
        cursor = await self.conn.execute(
            """
            SELECT team_id, line_count, cooldown_minutes, updated_at
            FROM claim_settings WHERE team_id = ?
            """,
            (team_id,),
        )
        row = await cursor.fetchone()
        return _row_to_settings(row) if row else None

    async def ensure_claim_settings(self, defaults: ClaimSettings) -> ClaimSettings:
        """Insert `defaults` unless the team has settings; return the stored record."""
        now = _ts(defaults.updated_at or datetime.now(timezone.utc))
        await self.conn.execute(
            """
            INSERT OR IGNORE INTO claim_settings
            (team_id, line_count, cooldown_minutes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                defaults.team_id,
                defaults.line_count,
                defaults.cooldown_minutes,
                now,
                now,
            ),
        )
        settings = await self.get_claim_settings(defaults.team_id)
        if settings is None:
            raise RuntimeError(f"Claim settings missing for team {defaults.team_id}")
        return settings

    async def save_claim_settings(self, settings: ClaimSettings) -> ClaimSettings:
        """Upsert the claim settings of a team."""
        now = _ts(settings.updated_at or datetime.now(timezone.utc))
        await self.conn.execute(
            """
            INSERT INTO claim_settings
            (team_id, line_count, cooldown_minutes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(team_id) DO UPDATE SET
                line_count = excluded.line_count,
                cooldown_minutes = excluded.cooldown_minutes,
                updated_at = excluded.updated_at
            """,
            (
                settings.team_id,
                settings.line_count,
                settings.cooldown_minutes,
                now,
                now,
            ),
        )
        stored = await self.get_claim_settings(settings.team_id)
        if stored is None:
            raise RuntimeError(f"Claim settings missing for team {settings.team_id}")
        return stored

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        tables = [
            "message_reads",
            "messages",
            "chat_group_members",
            "chat_groups",
            "queued_items",
            "claimed_items",
            "history",
            "claim_settings",
            "users",
        ]

        for table in tables:
            await self.conn.execute(f"DELETE FROM {table}")
