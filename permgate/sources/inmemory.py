"""In-memory implementation of the graph data source."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, Iterable, Mapping, Optional, Set

from .base import GraphDataSource


class InMemoryGraphSource(GraphDataSource):
    """Store role assignments and grants in local memory.

    Useful for tests or for applications that keep their role tables in
    process. The mutation methods play the part of the administrative layer:
    callers must still notify the gate through ``Gate.invalidate`` after
    changing an edge.
    """

    def __init__(
        self,
        assignments: Optional[Mapping[str, Iterable[str]]] = None,
        grants: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._assignments: Dict[str, Set[str]] = defaultdict(set)
        self._grants: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.Lock()
        for principal_id, roles in (assignments or {}).items():
            self._assignments[principal_id].update(roles)
        for role_id, permissions in (grants or {}).items():
            self._grants[role_id].update(permissions)

    # ------------------------------------------------------------------
    def load_roles_for_principal(self, principal_id: str) -> list[str]:
        with self._lock:
            return sorted(self._assignments.get(principal_id, ()))

    def load_permissions_for_role(self, role_id: str) -> list[str]:
        with self._lock:
            return sorted(self._grants.get(role_id, ()))

    # ------------------------------------------------------------------
    # Administrative edits
    def assign_role(self, principal_id: str, role_id: str) -> None:
        with self._lock:
            self._assignments[principal_id].add(role_id)

    def revoke_role(self, principal_id: str, role_id: str) -> None:
        with self._lock:
            self._assignments[principal_id].discard(role_id)

    def grant_permission(self, role_id: str, permission_id: str) -> None:
        with self._lock:
            self._grants[role_id].add(permission_id)

    def revoke_permission(self, role_id: str, permission_id: str) -> None:
        with self._lock:
            self._grants[role_id].discard(permission_id)

    def delete_role(self, role_id: str) -> None:
        """Remove a role together with every assignment of it."""
        with self._lock:
            self._grants.pop(role_id, None)
            for roles in self._assignments.values():
                roles.discard(role_id)
