"""Work queue, claims, settings and history."""

from .allocator import ClaimAllocator, IClaimAllocator
from .history import HistoryService
from .queue import WorkQueue
from .settings import ClaimSettingsStore

__all__ = [
    "ClaimAllocator",
    "IClaimAllocator",
    "ClaimSettingsStore",
    "HistoryService",
    "WorkQueue",
]
