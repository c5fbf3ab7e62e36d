"""SQLite implementation of the graph data source."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any

from .base import GraphDataSource


class SQLiteGraphSource(GraphDataSource):
    """Read role assignments and grants from SQLite pivot tables.

    The schema mirrors the usual ``principal_roles`` / ``role_permissions``
    pivot layout. Tables are created when missing so a fresh database can be
    populated with the administrative helpers below.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS principal_roles (
                    principal_id TEXT NOT NULL,
                    role_id TEXT NOT NULL,
                    PRIMARY KEY (principal_id, role_id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS role_permissions (
                    role_id TEXT NOT NULL,
                    permission_id TEXT NOT NULL,
                    PRIMARY KEY (role_id, permission_id)
                )
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Source API
    def load_roles_for_principal(self, principal_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT role_id FROM principal_roles WHERE principal_id = ? ORDER BY role_id",
            principal_id,
        )
        return [r["role_id"] for r in rows]

    def load_permissions_for_role(self, role_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT permission_id FROM role_permissions WHERE role_id = ? ORDER BY permission_id",
            role_id,
        )
        return [r["permission_id"] for r in rows]

    # ------------------------------------------------------------------
    # Administrative edits
    def assign_role(self, principal_id: str, role_id: str) -> None:
        self._execute(
            "INSERT OR IGNORE INTO principal_roles (principal_id, role_id) VALUES (?, ?)",
            principal_id,
            role_id,
        )

    def revoke_role(self, principal_id: str, role_id: str) -> None:
        self._execute(
            "DELETE FROM principal_roles WHERE principal_id = ? AND role_id = ?",
            principal_id,
            role_id,
        )

    def grant_permission(self, role_id: str, permission_id: str) -> None:
        self._execute(
            "INSERT OR IGNORE INTO role_permissions (role_id, permission_id) VALUES (?, ?)",
            role_id,
            permission_id,
        )

    def revoke_permission(self, role_id: str, permission_id: str) -> None:
        self._execute(
            "DELETE FROM role_permissions WHERE role_id = ? AND permission_id = ?",
            role_id,
            permission_id,
        )
