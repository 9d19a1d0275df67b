"""Application bootstrap and lifecycle management."""

import asyncio
import os
from typing import Protocol

from .chat import ChatService
from .claims import ClaimAllocator, ClaimSettingsStore, HistoryService, WorkQueue
from .config import Settings, load_settings, resolve_db_path
from .logging_config import get_logger
from .members import MemberService
from .realtime import PresenceRegistry, RoomBroadcaster, TypingIndicatorStore
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(self, db_path: str | None = None, settings: Settings | None = None):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._settings = settings or load_settings()

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._presence: PresenceRegistry | None = None
        self._broadcaster: RoomBroadcaster | None = None
        self._typing: TypingIndicatorStore | None = None
        self._claim_settings: ClaimSettingsStore | None = None
        self._queue: WorkQueue | None = None
        self._allocator: ClaimAllocator | None = None
        self._history: HistoryService | None = None
        self._chat: ChatService | None = None
        self._members: MemberService | None = None
        self._sweeper: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Real-time layer (in-memory only)
        self._presence = PresenceRegistry()
        self._broadcaster = RoomBroadcaster(self._presence)
        self._typing = TypingIndicatorStore(ttl_seconds=self._settings.typing_ttl_seconds)

        # 3. Claims (depend on Storage + broadcaster)
        self._claim_settings = ClaimSettingsStore(self._storage)
        self._queue = WorkQueue(self._storage, self._broadcaster)
        self._allocator = ClaimAllocator(
            self._storage,
            self._claim_settings,
            self._broadcaster,
            enforce_cooldown=self._settings.claim_enforce_cooldown,
        )
        self._history = HistoryService(self._storage)

        # Settle claims interrupted by a previous crash before serving
        await self._allocator.reconcile()

        # 4. Chat and members
        self._chat = ChatService(
            self._storage, history_limit=self._settings.message_history_limit
        )
        self._members = MemberService(self._storage, self._presence)

        self._running = True
        self._sweeper = asyncio.create_task(self._typing_sweeper())
        logger.info("All components initialized successfully")

    async def _typing_sweeper(self) -> None:
        """Background timer purging expired typing indicators."""
        while self._running:
            try:
                await asyncio.sleep(self._settings.typing_sweep_seconds)
                if self._typing:
                    self._typing.purge_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Typing sweep failed: %s", e, exc_info=True)

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._running = False
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        if self._broadcaster:
            self._broadcaster.clear()
        if self._presence:
            self._presence.clear()
        if self._typing:
            self._typing.clear()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._typing:
            self._typing.clear()
        logger.info("Reset complete")

    def _require(self, component):
        if component is None:
            raise RuntimeError("Application not started")
        return component

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        return self._require(self._storage)

    @property
    def presence(self) -> PresenceRegistry:
        return self._require(self._presence)

    @property
    def broadcaster(self) -> RoomBroadcaster:
        return self._require(self._broadcaster)

    @property
    def typing(self) -> TypingIndicatorStore:
        return self._require(self._typing)

    @property
    def chat(self) -> ChatService:
        return self._require(self._chat)

    @property
    def members(self) -> MemberService:
        return self._require(self._members)

    @property
    def queue(self) -> WorkQueue:
        return self._require(self._queue)

    @property
    def claims(self) -> ClaimAllocator:
        return self._require(self._allocator)

    @property
    def claim_settings(self) -> ClaimSettingsStore:
        return self._require(self._claim_settings)

    @property
    def history(self) -> HistoryService:
        return self._require(self._history)
