import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    expires_at: float


class ResultCache:
    """
    In-memory TTL cache for analysis results, keyed by repository URL and commit limit.

    Expired entries are dropped when read and by `cleanup()`, which the app runs
    on a timer. State is per process and lost on restart.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self._clock = clock

    @staticmethod
    def make_key(repo_url: str, max_commits: Optional[int] = None) -> str:
        return f"repo:{repo_url}:{max_commits or 'all'}"

    def get(self, repo_url: str, max_commits: Optional[int] = None) -> Optional[Any]:
        key = self.make_key(repo_url, max_commits)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.data

    def set(self, repo_url: str, data: Any, ttl: Optional[float] = None, max_commits: Optional[int] = None) -> None:
        now = self._clock()
        self._entries[self.make_key(repo_url, max_commits)] = CacheEntry(
            data=data,
            timestamp=now,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
        )

    def delete(self, repo_url: str, max_commits: Optional[int] = None) -> None:
        self._entries.pop(self.make_key(repo_url, max_commits), None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if now > entry.expires_at)
        return {
            "total": len(self._entries),
            "valid": len(self._entries) - expired,
            "expired": expired,
        }

    def cleanup(self) -> int:
        """Removes expired entries and returns how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cache sweep removed %d expired entries", len(expired))
        return len(expired)
