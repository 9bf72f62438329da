"""
Per-agent TTL key-value store.

Holds short-lived agent state that must survive between ticks but is not
worth a durable table: adaptive-tuning cooldowns and overrides, growth
snapshots, cached planet roles, seen-mission markers. Entries are namespaced
by agent id so agents never see each other's state.

Injected into components rather than reached through a global, so tests
can drive time with a fake clock.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from persistence.models import utcnow

logger = logging.getLogger(__name__)


class TTLStore:
    """In-memory TTL store keyed by (agent_id, key)."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow
        self._entries: Dict[Tuple[int, str], Tuple[Any, Optional[datetime]]] = {}
        self._lock = threading.Lock()
        # Soonest expiry among held entries; writes sweep once it has passed
        self._next_expiry: Optional[datetime] = None

    def __len__(self) -> int:
        """Entries currently held, expired ones not yet swept included."""
        with self._lock:
            return len(self._entries)

    def now(self) -> datetime:
        return self._clock()

    def get(self, agent_id: int, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get((agent_id, key))
            if entry is None:
                return default
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._entries[(agent_id, key)]
                return default
            return value

    def set(self, agent_id: int, key: str, value: Any, ttl: Optional[timedelta] = None):
        """Store a value. ttl=None keeps it until deleted."""
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            self._store(agent_id, key, value, now + ttl if ttl is not None else None)

    def has(self, agent_id: int, key: str) -> bool:
        return self.get(agent_id, key) is not None

    def add(self, agent_id: int, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        """Set only if absent (or expired). Returns True if stored."""
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            if (agent_id, key) in self._entries:
                return False
            self._store(agent_id, key, value, now + ttl if ttl is not None else None)
            return True

    def delete(self, agent_id: int, key: str):
        with self._lock:
            self._entries.pop((agent_id, key), None)

    def clear_agent(self, agent_id: int):
        with self._lock:
            for k in [k for k in self._entries if k[0] == agent_id]:
                del self._entries[k]

    def _store(self, agent_id: int, key: str, value: Any, expires_at: Optional[datetime]):
        self._entries[(agent_id, key)] = (value, expires_at)
        if expires_at is not None and (self._next_expiry is None or expires_at < self._next_expiry):
            self._next_expiry = expires_at

    def _purge_expired(self, now: datetime):
        """Drop every expired entry. Caller holds the lock."""
        if self._next_expiry is None or self._next_expiry > now:
            return
        expired = [k for k, (_, expires_at) in self._entries.items()
                   if expires_at is not None and expires_at <= now]
        for k in expired:
            del self._entries[k]
        pending = [expires_at for _, expires_at in self._entries.values() if expires_at is not None]
        self._next_expiry = min(pending) if pending else None
        if expired:
            logger.debug(f"TTL store swept {len(expired)} expired entries, {len(self._entries)} held")
