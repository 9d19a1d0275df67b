"""Work queue and claim data models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class QueuedItem:
    """A unit of work waiting to be claimed."""

    id: str
    team_id: str
    content: str
    added_by: str
    added_at: datetime
    reservation: str | None = None  # set while a claim is in flight

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "content": self.content,
            "addedBy": self.added_by,
            "addedAt": self.added_at.isoformat(),
        }


@dataclass
class ClaimedItem:
    """A queued item assigned to one user until its cooldown ends."""

    id: str
    team_id: str
    content: str
    claimed_by: str
    claimed_by_name: str
    claimed_at: datetime
    cooldown_until: datetime
    reservation: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "claimedBy": self.claimed_by,
            "claimedByName": self.claimed_by_name,
            "claimedAt": self.claimed_at.isoformat(),
            "cooldownUntil": self.cooldown_until.isoformat(),
        }


@dataclass
class HistoryEntry:
    """Append-only audit record of a claim."""

    id: str
    team_id: str
    content: str
    claimed_by: str  # display name at claim time
    claimed_by_user_id: str
    claimed_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "content": self.content,
            "claimedBy": self.claimed_by,
            "claimedByUserId": self.claimed_by_user_id,
            "claimedAt": self.claimed_at.isoformat(),
        }


@dataclass
class ClaimSettings:
    """Per-team claim batch size and cooldown."""

    team_id: str
    line_count: int
    cooldown_minutes: float
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "lineCount": self.line_count,
            "cooldownMinutes": self.cooldown_minutes,
        }


@dataclass
class ClaimResult:
    """Outcome of a successful claim."""

    claimed_at: datetime
    cooldown_until: datetime
    items: list[ClaimedItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "claimedCount": len(self.items),
            "claimedAt": self.claimed_at.isoformat(),
            "cooldownUntil": self.cooldown_until.isoformat(),
            "claimedLines": [item.to_dict() for item in self.items],
        }
