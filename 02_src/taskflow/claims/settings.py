"""ClaimSettingsStore implementation."""

import math
from datetime import datetime, timezone

from ..config import (
    DEFAULT_COOLDOWN_MINUTES,
    DEFAULT_LINE_COUNT,
    MAX_COOLDOWN_MINUTES,
    MAX_LINE_COUNT,
    MIN_COOLDOWN_MINUTES,
    MIN_LINE_COUNT,
)
from ..errors import PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import ClaimSettings
from ..storage import IStorage

logger = get_logger(__name__)


class ClaimSettingsStore:
    """Per-team batch size and cooldown, created with defaults on first read."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def get(self, team_id: str) -> ClaimSettings:
        return await self._storage.ensure_claim_settings(
            ClaimSettings(
                team_id=team_id,
                line_count=DEFAULT_LINE_COUNT,
                cooldown_minutes=DEFAULT_COOLDOWN_MINUTES,
            )
        )

    async def update(
        self, team_id: str, role: str, line_count: int, cooldown_minutes: float
    ) -> ClaimSettings:
        """Admin-only update; both values are range checked before writing."""
        if role != "admin":
            raise PermissionDeniedError("Admin access required")

        if isinstance(line_count, bool) or not isinstance(line_count, int):
            raise ValidationError("lineCount must be an integer")
        if not MIN_LINE_COUNT <= line_count <= MAX_LINE_COUNT:
            raise ValidationError(
                f"lineCount must be between {MIN_LINE_COUNT} and {MAX_LINE_COUNT}"
            )

        if isinstance(cooldown_minutes, bool) or not isinstance(
            cooldown_minutes, (int, float)
        ):
            raise ValidationError("cooldownMinutes must be a number")
        if math.isnan(cooldown_minutes) or not (
            MIN_COOLDOWN_MINUTES <= cooldown_minutes <= MAX_COOLDOWN_MINUTES
        ):
            raise ValidationError(
                f"cooldownMinutes must be between {MIN_COOLDOWN_MINUTES} "
                f"and {MAX_COOLDOWN_MINUTES}"
            )

        settings = await self._storage.save_claim_settings(
            ClaimSettings(
                team_id=team_id,
                line_count=line_count,
                cooldown_minutes=float(cooldown_minutes),
                updated_at=datetime.now(timezone.utc),
            )
        )
        logger.info(
            "Claim settings updated",
            extra={"context": settings.to_dict()},
        )
        return settings
