"""Per-principal memoisation of decisions with event-driven invalidation."""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from .models import Decision

logger = logging.getLogger(__name__)

# (principal id, principal fingerprint, ability, resource fingerprint)
CacheKey = Tuple[str, str, str, str]

NO_RESOURCE = "-"


def resource_fingerprint(resource: Any) -> Optional[str]:
    """Stable cache key component for ``resource``.

    Returns ``None`` when no stable fingerprint can be derived, in which case
    the check is not cached. Resources can opt in by defining an
    ``authz_fingerprint()`` method.
    """
    if resource is None:
        return NO_RESOURCE
    custom = getattr(resource, "authz_fingerprint", None)
    if callable(custom):
        try:
            return f"{type(resource).__qualname__}:{custom()}"
        except Exception as e:
            logger.warning(
                f"authz_fingerprint of {type(resource).__qualname__} failed, "
                f"not caching: {e}"
            )
            return None
    if isinstance(resource, (str, int, float, bool)):
        return f"{type(resource).__name__}:{resource!r}"
    if isinstance(resource, BaseModel):
        return f"{type(resource).__qualname__}:{resource.model_dump_json()}"
    try:
        if dataclasses.is_dataclass(resource) and not isinstance(resource, type):
            payload = json.dumps(dataclasses.asdict(resource), sort_keys=True)
        elif isinstance(resource, (Mapping, tuple, list)):
            payload = json.dumps(resource, sort_keys=True)
        else:
            return None
    except (TypeError, ValueError):
        return None
    return f"{type(resource).__qualname__}:{payload}"


class CacheEntry(BaseModel):
    """Cached decision plus the roles that governed it."""

    model_config = ConfigDict(frozen=True)

    decision: Decision
    roles: FrozenSet[str]
    created_at: float


class DecisionCache:
    """Thread-safe decision store with targeted invalidation.

    Entries are indexed by principal and by the roles that were in effect
    when the decision was made, so a role change only sweeps the principals
    that used that role. Every invalidation bumps :attr:`generation`; a
    result computed under an older generation is refused by :meth:`put`.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._by_principal: Dict[str, Set[CacheKey]] = {}
        self._by_role: Dict[str, Set[str]] = {}
        # roles recorded across a principal's live entries
        self._roles_of_principal: Dict[str, Set[str]] = {}
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[Decision]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._ttl is not None and self._clock() - entry.created_at >= self._ttl:
                self._remove(key)
                logger.debug(f"Cache entry expired for {key[0]}:{key[2]}")
                return None
            return entry.decision

    def put(
        self,
        key: CacheKey,
        decision: Decision,
        roles: FrozenSet[str],
        generation: int,
    ) -> bool:
        """Store ``decision`` unless an invalidation happened after ``generation``."""
        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding stale decision for {key[0]}:{key[2]}")
                return False
            if (
                self._max_entries is not None
                and key not in self._entries
                and len(self._entries) >= self._max_entries
            ):
                self._remove(next(iter(self._entries)))
            self._entries[key] = CacheEntry(
                decision=decision, roles=roles, created_at=self._clock()
            )
            principal_id = key[0]
            self._by_principal.setdefault(principal_id, set()).add(key)
            self._roles_of_principal.setdefault(principal_id, set()).update(roles)
            for role_id in roles:
                self._by_role.setdefault(role_id, set()).add(principal_id)
            return True

    def invalidate_principal(self, principal_id: str) -> int:
        """Evict every entry for ``principal_id``."""
        with self._lock:
            self._generation += 1
            evicted = self._evict_principal(principal_id)
        logger.debug(f"Evicted {evicted} cached decisions for principal {principal_id}")
        return evicted

    def invalidate_role(self, role_id: str) -> int:
        """Evict every entry of every principal whose decisions used ``role_id``."""
        with self._lock:
            self._generation += 1
            principals = self._by_role.pop(role_id, set())
            evicted = sum(self._evict_principal(p) for p in principals)
        logger.debug(f"Evicted {evicted} cached decisions for role {role_id}")
        return evicted

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()
            self._by_principal.clear()
            self._by_role.clear()
            self._roles_of_principal.clear()

    # ------------------------------------------------------------------
    def _evict_principal(self, principal_id: str) -> int:
        keys = self._by_principal.pop(principal_id, set())
        for key in keys:
            self._entries.pop(key, None)
        self._unindex_principal(principal_id)
        return len(keys)

    def _remove(self, key: CacheKey) -> None:
        self._entries.pop(key, None)
        keys = self._by_principal.get(key[0])
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._by_principal[key[0]]
                self._unindex_principal(key[0])

    def _unindex_principal(self, principal_id: str) -> None:
        # called once the principal has no live entries left
        for role_id in self._roles_of_principal.pop(principal_id, ()):
            principals = self._by_role.get(role_id)
            if principals is None:
                continue
            principals.discard(principal_id)
            if not principals:
                del self._by_role[role_id]
