"""MemberService implementation."""

import uuid
from datetime import datetime, timezone

import aiosqlite

from ..config import TEAM_CHAT_NAME
from ..errors import PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import User
from ..realtime import PresenceRegistry
from ..storage import IStorage

logger = get_logger(__name__)

MIN_NAME_LENGTH = 2


class MemberService:
    """Team roster: admins add members, everyone can list them."""

    def __init__(self, storage: IStorage, presence: PresenceRegistry):
        self._storage = storage
        self._presence = presence

    async def create_member(
        self,
        team_id: str,
        role: str,
        name: str,
        email: str,
        member_role: str = "member",
    ) -> User:
        if role != "admin":
            raise PermissionDeniedError("Admin access required")

        name = (name or "").strip()
        email = (email or "").strip().lower()
        if len(name) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"Name must be at least {MIN_NAME_LENGTH} characters"
            )
        local, _, domain = email.partition("@")
        if not local or not domain:
            raise ValidationError("A valid email is required")
        if member_role not in ("admin", "member"):
            raise ValidationError("role must be 'admin' or 'member'")
        if await self._storage.get_user_by_email(email) is not None:
            raise ValidationError("Email is already registered")

        now = datetime.now(timezone.utc)
        user = User(
            id=uuid.uuid4().hex,
            team_id=team_id,
            name=name,
            email=email,
            role=member_role,
            created_at=now,
        )
        try:
            await self._storage.save_user(user)
        except aiosqlite.IntegrityError as e:
            raise ValidationError("Email is already registered") from e

        group = await self._storage.find_group(team_id, TEAM_CHAT_NAME)
        if group is not None:
            await self._storage.add_group_member(group.id, user.id, now)

        logger.info(
            "Member created",
            extra={
                "context": {"team_id": team_id, "user_id": user.id, "role": member_role}
            },
        )
        return user

    async def list_members(self, team_id: str) -> list[dict]:
        """Users of the team with their online flag."""
        users = await self._storage.list_users(team_id)
        return [
            {**user.to_dict(), "online": self._presence.is_online(user.id)}
            for user in users
        ]
