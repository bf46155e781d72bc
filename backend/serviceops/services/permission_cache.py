from __future__ import annotations
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional
from flask import current_app, has_app_context

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    user_key: str
    permissions: FrozenSet[str]
    status: str
    fetched_at: float


class PermissionCache:
    """Advisory per-user cache of resolved permission sets.

    Fresh entries let the resolver skip the lookup. Expired entries are kept as
    last-known-good for when the store cannot be reached; only ``invalidate``
    removes them.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def put(self, user_key: str, permissions, status: str) -> CacheEntry:
        entry = CacheEntry(user_key, frozenset(permissions), status, self._clock())
        with self._lock:
            self._entries[user_key] = entry
        return entry

    def get_fresh(self, user_key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(user_key)
        if entry is None or self._clock() - entry.fetched_at >= self.ttl:
            return None
        return entry

    def last_known_good(self, user_key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(user_key)

    def invalidate(self, user_key: str):
        with self._lock:
            self._entries.pop(user_key, None)

    def invalidate_all(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)


def invalidate_cached_permissions(user_key: Optional[str] = None):
    """Drop cached sets after an RBAC mutation: one user, or everyone when
    ``user_key`` is None (role-wide changes)."""
    if not has_app_context():
        return
    cache = current_app.extensions.get('permission_cache')
    if cache is None:
        return
    if user_key is None:
        cache.invalidate_all()
    else:
        cache.invalidate(user_key)
