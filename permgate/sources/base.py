"""Read interface over the externally owned role/permission store."""

from __future__ import annotations

from typing import Protocol


class GraphDataSource(Protocol):
    """Protocol for backends that supply role and permission edges."""

    def load_roles_for_principal(self, principal_id: str) -> list[str]:
        """Return the role identifiers currently assigned to ``principal_id``."""

    def load_permissions_for_role(self, role_id: str) -> list[str]:
        """Return the permission identifiers currently granted to ``role_id``."""
