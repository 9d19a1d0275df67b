"""WorkQueue: the shared per-team list of items waiting to be claimed."""

import uuid
from datetime import datetime, timezone

from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import EventType, QueuedItem, RealtimeEvent
from ..realtime import IBroadcaster
from ..storage import IStorage

logger = get_logger(__name__)

MAX_BATCH_SIZE = 1000


class WorkQueue:
    """Adds, lists and removes queued items; announces every change."""

    def __init__(self, storage: IStorage, broadcaster: IBroadcaster):
        self._storage = storage
        self._broadcaster = broadcaster

    async def add_items(
        self, team_id: str, user_id: str, lines: list[str]
    ) -> list[QueuedItem]:
        contents = [line.strip() for line in lines if line and line.strip()]
        if not contents:
            raise ValidationError("At least one non-empty line is required")
        if len(contents) > MAX_BATCH_SIZE:
            raise ValidationError(f"At most {MAX_BATCH_SIZE} lines per batch")

        added_at = datetime.now(timezone.utc)
        items = [
            QueuedItem(
                id=uuid.uuid4().hex,
                team_id=team_id,
                content=content,
                added_by=user_id,
                added_at=added_at,
            )
            for content in contents
        ]
        await self._storage.add_queued_items(items)

        logger.info(
            "Queued items added",
            extra={"context": {"team_id": team_id, "count": len(items)}},
        )
        await self._notify(team_id, {"reason": "added", "count": len(items)})
        return items

    async def list_items(self, team_id: str) -> list[QueuedItem]:
        return await self._storage.list_queued_items(team_id)

    async def remove_item(self, team_id: str, item_id: str) -> None:
        if not await self._storage.delete_queued_item(team_id, item_id):
            raise NotFoundError(f"Queued item {item_id} not found")
        await self._notify(team_id, {"reason": "removed", "itemId": item_id})

    async def _notify(self, team_id: str, payload: dict) -> None:
        await self._broadcaster.broadcast_team(
            team_id,
            RealtimeEvent(
                type=EventType.QUEUE_CHANGED, team_id=team_id, payload=payload
            ),
        )
