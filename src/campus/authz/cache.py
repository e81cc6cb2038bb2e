"""
Process-wide cache for the low-churn reference data (branches and catalog).
Entries expire after a short TTL and are dropped on any write through the CRUD layer.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .catalog import PermissionCatalog
from .hierarchy import BranchHierarchy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    hierarchy: BranchHierarchy
    catalog: PermissionCatalog


class ReferenceDataCache:
    def __init__(self, ttl_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[ReferenceData] = None
        self._expires_at = 0.0
        self._generation = 0

    def peek(self) -> Optional[ReferenceData]:
        now = self._clock()
        with self._lock:
            if self._entry is not None and self._expires_at > now:
                return self._entry
            return None

    def store(self, data: ReferenceData, generation: Optional[int] = None) -> None:
        """Keep ``data`` unless an invalidation happened since it was read."""
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Discarding reference data loaded before the last invalidation")
                return
            self._entry = data
            self._expires_at = self._clock() + self.ttl_seconds

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None
            self._expires_at = 0.0
            self._generation += 1
        logger.info("Access reference data cache invalidated")

    async def get_or_load(self, loader: Callable[[], Awaitable[ReferenceData]]) -> ReferenceData:
        cached = self.peek()
        if cached is not None:
            return cached
        generation = self.generation
        data = await loader()
        self.store(data, generation)
        return data
