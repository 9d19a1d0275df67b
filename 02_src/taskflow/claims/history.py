"""HistoryService: read access to the claim audit trail."""

from datetime import date

from ..errors import ValidationError
from ..models import HistoryEntry
from ..storage import IStorage

MAX_HISTORY_LIMIT = 1000


class HistoryService:
    """Admins see the whole team's history, members only their own."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def list_entries(
        self,
        team_id: str,
        user_id: str,
        role: str,
        search: str | None = None,
        day: date | None = None,
        limit: int = 500,
    ) -> list[HistoryEntry]:
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
        return await self._storage.list_history(
            team_id,
            user_id=None if role == "admin" else user_id,
            search=search.strip() if search and search.strip() else None,
            day=day,
            limit=limit,
        )
