"""ClaimAllocator: exclusive batch assignment of queued items."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Protocol

from ..errors import (
    CooldownActiveError,
    NoItemsAvailableError,
    NotFoundError,
    TransportError,
)
from ..logging_config import get_logger
from ..models import (
    ClaimedItem,
    ClaimResult,
    EventType,
    HistoryEntry,
    RealtimeEvent,
)
from ..realtime import IBroadcaster
from ..storage import IStorage
from .settings import ClaimSettingsStore

logger = get_logger(__name__)


class IClaimAllocator(Protocol):
    """Assigning queued items to users with a cooldown."""

    async def claim(self, team_id: str, user_id: str) -> ClaimResult:
        """Claim up to lineCount queued items for a user."""
        ...

    async def list_claimed(self, team_id: str, user_id: str) -> list[ClaimedItem]:
        """Items currently held by a user, newest first."""
        ...

    async def release_claimed(self, team_id: str, user_id: str) -> int:
        """Drop a user's claimed items, ending their cooldown."""
        ...


class ClaimAllocator:
    """Claims queued items without in-process locks.

    Protocol per claim:
      1. reserve up to N rows with one atomic conditional UPDATE (exclusivity),
      2. write claimed items and history (durable record first),
      3. delete the reserved rows (removal last).
    A failure in 2 releases the reservation. A crash between 2 and 3 is
    resolved by reconcile() at startup.
    """

    def __init__(
        self,
        storage: IStorage,
        settings: ClaimSettingsStore,
        broadcaster: IBroadcaster,
        enforce_cooldown: bool = True,
    ):
        self._storage = storage
        self._settings = settings
        self._broadcaster = broadcaster
        self._enforce_cooldown = enforce_cooldown

    async def claim(self, team_id: str, user_id: str) -> ClaimResult:
        """Claim up to lineCount queued items for a user."""
        user = await self._storage.get_user(user_id)
        if user is None or user.team_id != team_id:
            raise NotFoundError("User not found")

        settings = await self._settings.get(team_id)
        now = datetime.now(timezone.utc)

        if self._enforce_cooldown:
            active_until = await self._storage.get_active_cooldown(
                team_id, user_id, now
            )
            if active_until is not None:
                raise CooldownActiveError(active_until)

        token = uuid.uuid4().hex
        reserved = await self._storage.reserve_queued_items(
            team_id, settings.line_count, token
        )
        if not reserved:
            raise NoItemsAvailableError("No lines available to claim")

        cooldown_until = now + timedelta(minutes=settings.cooldown_minutes)
        claimed = [
            ClaimedItem(
                id=uuid.uuid4().hex,
                team_id=team_id,
                content=item.content,
                claimed_by=user.id,
                claimed_by_name=user.name,
                claimed_at=now,
                cooldown_until=cooldown_until,
                reservation=token,
            )
            for item in reserved
        ]
        history = [
            HistoryEntry(
                id=uuid.uuid4().hex,
                team_id=team_id,
                content=item.content,
                claimed_by=user.name,
                claimed_by_user_id=user.id,
                claimed_at=now,
            )
            for item in reserved
        ]

        try:
            await self._storage.save_claimed_items(claimed)
            await self._storage.save_history_entries(history)
        except Exception as e:
            logger.error(
                "Claim write failed, releasing reservation: %s",
                e,
                exc_info=True,
                extra={"context": {"team_id": team_id, "reservation": token}},
            )
            await self._compensate(token)
            raise TransportError("Failed to record claim") from e

        try:
            await self._storage.delete_reserved_items(token)
        except Exception as e:
            # The claim is recorded; the hidden queue rows are removed by reconcile()
            logger.error(
                "Reserved rows not removed after claim: %s",
                e,
                exc_info=True,
                extra={"context": {"team_id": team_id, "reservation": token}},
            )

        logger.info(
            "Items claimed",
            extra={
                "context": {
                    "team_id": team_id,
                    "user_id": user_id,
                    "count": len(claimed),
                    "cooldown_until": cooldown_until.isoformat(),
                }
            },
        )
        await self._broadcaster.broadcast_team(
            team_id,
            RealtimeEvent(
                type=EventType.QUEUE_CHANGED,
                team_id=team_id,
                payload={
                    "reason": "claimed",
                    "count": len(claimed),
                    "claimedBy": user.id,
                },
            ),
        )
        return ClaimResult(claimed_at=now, cooldown_until=cooldown_until, items=claimed)

    async def _compensate(self, token: str) -> None:
        try:
            await self._storage.delete_claimed_by_reservation(token)
            await self._storage.release_reservation(token)
        except Exception as e:
            logger.error(
                "Compensation failed; reservation %s left for reconcile(): %s",
                token,
                e,
                exc_info=True,
            )

    async def list_claimed(self, team_id: str, user_id: str) -> list[ClaimedItem]:
        """Items currently held by a user, newest first."""
        return await self._storage.list_claimed_items(team_id, user_id)

    async def active_cooldown(self, team_id: str, user_id: str) -> datetime | None:
        """When the user's current cooldown ends, or None."""
        return await self._storage.get_active_cooldown(
            team_id, user_id, datetime.now(timezone.utc)
        )

    async def release_claimed(self, team_id: str, user_id: str) -> int:
        """Drop a user's claimed items, ending their cooldown."""
        released = await self._storage.delete_claimed_items(team_id, user_id)
        logger.info(
            "Claimed items released",
            extra={
                "context": {"team_id": team_id, "user_id": user_id, "count": released}
            },
        )
        return released

    async def reconcile(self) -> tuple[int, int]:
        """Settle reservations left by interrupted claims. Run before serving."""
        removed, released = await self._storage.reconcile_reservations()
        if removed or released:
            logger.warning(
                "Reconciled interrupted claims",
                extra={"context": {"removed": removed, "released": released}},
            )
        return removed, released
