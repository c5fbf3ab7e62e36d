"""In-memory snapshot of principal-role and role-permission edges."""

from __future__ import annotations

import logging
import threading
from typing import Dict, FrozenSet, Optional

from .models import Principal, Role
from .sources.base import GraphDataSource

logger = logging.getLogger(__name__)


class RolePermissionGraph:
    """Answers membership questions from a lazily loaded snapshot.

    Edges are loaded from the data source the first time a principal or role
    is asked about, and re-read when :meth:`refresh_principal` or
    :meth:`refresh_role` is called. Each edge set is an immutable frozenset
    installed under ``_lock``; readers do a single ``dict.get`` and never
    lock. Data-source reads happen outside the lock.

    ``max_principals`` bounds the number of loaded principals. The oldest
    loaded principal is forgotten first and simply reloads on its next check.
    """

    def __init__(
        self, source: GraphDataSource, max_principals: Optional[int] = None
    ) -> None:
        if max_principals is not None and max_principals <= 0:
            raise ValueError("max_principals must be positive")
        self._source = source
        self._max_principals = max_principals
        self._principal_roles: Dict[str, FrozenSet[str]] = {}
        self._role_permissions: Dict[str, FrozenSet[str]] = {}
        self._generation = 0
        self._lock = threading.Lock()
        # serialises refreshes so an older read never replaces a newer one
        self._refresh_lock = threading.Lock()

    @property
    def source(self) -> GraphDataSource:
        return self._source

    @property
    def loaded_principals(self) -> int:
        return len(self._principal_roles)

    # ------------------------------------------------------------------
    # Queries
    def roles_of(self, principal: Principal) -> FrozenSet[str]:
        """Roles held by ``principal``.

        Roles supplied on the principal take precedence over the store.
        """
        if principal.roles is not None:
            return principal.roles
        roles = self._principal_roles.get(principal.id)
        if roles is None:
            roles = self._load_principal(principal.id)
        return roles

    def permissions_of(self, role_id: str) -> FrozenSet[str]:
        permissions = self._role_permissions.get(role_id)
        if permissions is None:
            permissions = self._load_role(role_id)
        return permissions

    def has_permission(self, principal: Principal, permission: str) -> bool:
        """True iff any role of ``principal`` grants ``permission``."""
        return any(
            permission in self.permissions_of(role_id)
            for role_id in self.roles_of(principal)
        )

    def role(self, role_id: str) -> Role:
        return Role(id=role_id, name=role_id, permissions=self.permissions_of(role_id))

    def principals_with_role(self, role_id: str) -> set[str]:
        """Loaded principals whose snapshot includes ``role_id``."""
        with self._lock:
            loaded = list(self._principal_roles.items())
        return {principal_id for principal_id, roles in loaded if role_id in roles}

    # ------------------------------------------------------------------
    # Refresh hooks
    def refresh_principal(self, principal_id: str) -> None:
        """Re-read the role assignments of ``principal_id``."""
        with self._refresh_lock:
            roles = frozenset(self._source.load_roles_for_principal(principal_id))
            with self._lock:
                self._generation += 1
                self._install_principal(principal_id, roles)
        logger.info(f"Refreshed roles for principal {principal_id}: {sorted(roles)}")

    def refresh_role(self, role_id: str) -> None:
        """Re-read the permission grants of ``role_id``."""
        with self._refresh_lock:
            permissions = frozenset(self._source.load_permissions_for_role(role_id))
            with self._lock:
                self._generation += 1
                self._role_permissions[role_id] = permissions
        logger.info(f"Refreshed permissions for role {role_id}: {sorted(permissions)}")

    def clear(self) -> None:
        """Drop every loaded edge; subsequent queries reload from the source."""
        with self._lock:
            self._generation += 1
            self._principal_roles = {}
            self._role_permissions = {}

    # ------------------------------------------------------------------
    def _load_principal(self, principal_id: str) -> FrozenSet[str]:
        generation = self._generation
        roles = frozenset(self._source.load_roles_for_principal(principal_id))
        with self._lock:
            # a refresh that ran while we were reading wins
            if self._generation == generation and principal_id not in self._principal_roles:
                self._install_principal(principal_id, roles)
        logger.debug(f"Loaded roles for principal {principal_id}")
        return roles

    def _load_role(self, role_id: str) -> FrozenSet[str]:
        generation = self._generation
        permissions = frozenset(self._source.load_permissions_for_role(role_id))
        with self._lock:
            if self._generation == generation and role_id not in self._role_permissions:
                self._role_permissions[role_id] = permissions
        logger.debug(f"Loaded permissions for role {role_id}")
        return permissions

    def _install_principal(self, principal_id: str, roles: FrozenSet[str]) -> None:
        # caller holds _lock
        loaded = self._principal_roles
        if (
            self._max_principals is not None
            and principal_id not in loaded
            and len(loaded) >= self._max_principals
        ):
            del loaded[next(iter(loaded))]
        loaded[principal_id] = roles
