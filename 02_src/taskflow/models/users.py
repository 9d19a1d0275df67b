"""User-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = Literal["admin", "member"]


@dataclass
class User:
    """A user belonging to exactly one team."""

    id: str
    team_id: str
    name: str
    email: str
    role: Role
    created_at: datetime
    avatar_url: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatarUrl": self.avatar_url,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Principal:
    """The authenticated caller resolved from a credential."""

    user_id: str
    team_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
