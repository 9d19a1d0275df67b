"""TypingIndicatorStore implementation."""

import time
from typing import Callable

from ..models import ChatType, TypingIndicator

DEFAULT_TTL_SECONDS = 10.0


class TypingIndicatorStore:
    """In-memory (chat, user) -> typing marker with TTL-based expiry.

    Reads skip stale entries, so a missed clear (crash, dropped socket) can
    never leave an indicator stuck. purge_expired() reclaims memory.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, dict[str, TypingIndicator]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def set_typing(
        self, user_id: str, chat_id: str, chat_type: ChatType, sender_name: str
    ) -> TypingIndicator:
        indicator = TypingIndicator(
            user_id=user_id,
            chat_id=chat_id,
            chat_type=chat_type,
            sender_name=sender_name,
            timestamp=self._clock(),
        )
        self._entries.setdefault(chat_id, {})[user_id] = indicator
        return indicator

    def clear_typing(self, user_id: str, chat_id: str) -> bool:
        chat = self._entries.get(chat_id)
        if not chat or chat.pop(user_id, None) is None:
            return False
        if not chat:
            del self._entries[chat_id]
        return True

    def clear_user(self, user_id: str) -> list[str]:
        """Drop every indicator of a user; returns the affected chat ids."""
        cleared = [chat_id for chat_id, chat in self._entries.items() if user_id in chat]
        for chat_id in cleared:
            self.clear_typing(user_id, chat_id)
        return cleared

    def _is_live(self, indicator: TypingIndicator, now: float) -> bool:
        return now - indicator.timestamp < self._ttl

    def get_typing(
        self, chat_id: str, exclude_user: str | None = None
    ) -> list[TypingIndicator]:
        """Live indicators of a chat, oldest first."""
        now = self._clock()
        live = [
            indicator
            for indicator in self._entries.get(chat_id, {}).values()
            if self._is_live(indicator, now) and indicator.user_id != exclude_user
        ]
        return sorted(live, key=lambda indicator: indicator.timestamp)

    def purge_expired(self) -> int:
        now = self._clock()
        removed = 0
        for chat_id in list(self._entries):
            chat = self._entries[chat_id]
            for user_id in [u for u, ind in chat.items() if not self._is_live(ind, now)]:
                del chat[user_id]
                removed += 1
            if not chat:
                del self._entries[chat_id]
        return removed

    def clear(self) -> None:
        self._entries.clear()
