"""
Similarity match cache, keyed by requester id

Entries are immutable and replaced whole. Callers that read, recompute and
write an entry hold the per-key lock from lock_for() for the whole sequence,
so a force refresh never interleaves with a cached read of the same key.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Tuple

from models import MatchCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    requester_id: str
    matches: Tuple[MatchCandidate, ...]
    created_at: datetime
    max_results: int
    min_compatibility: float

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    def is_stale(self, embedding_generated_at: datetime) -> bool:
        """True when the requester's embedding was regenerated after this entry"""
        return self.created_at <= embedding_generated_at

    def covers(self, max_results: int, min_compatibility: float) -> bool:
        """
        True when the answer for (max_results, min_compatibility) is a prefix
        of this entry: same or stricter threshold, same or fewer results.
        """
        return max_results <= self.max_results and min_compatibility >= self.min_compatibility


class MatchCache:
    def __init__(self, max_age: Optional[timedelta] = None):
        self.max_age = max_age
        self._entries: Dict[str, CacheEntry] = {}
        # requester id -> (lock, number of callers holding or waiting on it)
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock_for(self, requester_id: str) -> Iterator[None]:
        """Hold the requester's lock; it is discarded once no caller needs it"""
        with self._guard:
            lock, users = self._locks.get(requester_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[requester_id] = (lock, users + 1)

        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[requester_id]
                if users <= 1:
                    del self._locks[requester_id]
                else:
                    self._locks[requester_id] = (lock, users - 1)

    def active_locks(self) -> int:
        with self._guard:
            return len(self._locks)

    def get(self, requester_id: str) -> Optional[CacheEntry]:
        with self._guard:
            return self._entries.get(requester_id)

    def put(self, entry: CacheEntry) -> None:
        """Store entry, dropping other entries that have expired by its creation time"""
        with self._guard:
            expired = [
                key for key, existing in self._entries.items()
                if self.is_expired(existing, entry.created_at)
            ]
            for key in expired:
                del self._entries[key]
            self._entries[entry.requester_id] = entry
        if expired:
            logger.info(f"Pruned {len(expired)} expired cache entries")
        logger.info(f"Cached {len(entry.matches)} matches for {entry.requester_id}")

    def invalidate(self, requester_id: str) -> bool:
        """Drop the entry for requester_id; returns whether one existed"""
        with self._guard:
            removed = self._entries.pop(requester_id, None) is not None
        if removed:
            logger.info(f"Invalidated cached matches for {requester_id}")
        return removed

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return self.max_age is not None and entry.age(now) > self.max_age

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
