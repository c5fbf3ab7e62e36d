"""Audit records and sinks for authorization decisions."""

from __future__ import annotations

import abc
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from ..models import Decision


class AuditRecord(BaseModel):
    """One authorization decision as seen by the audit trail."""

    principal_id: str
    ability: str
    resource_fingerprint: Optional[str] = None
    decision: Decision
    cached: bool = False
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(metaclass=abc.ABCMeta):
    """Receives every decision made by a gate."""

    @abc.abstractmethod
    def record(self, entry: AuditRecord) -> None:
        """Persist an audit entry."""
        raise NotImplementedError

    def flush(self) -> None:
        """Flush any buffered entries (no-op by default)."""
        pass

    def close(self) -> None:
        """Release resources (no-op by default)."""
        pass


class NullAuditSink(AuditSink):
    """Discards every entry."""

    def record(self, entry: AuditRecord) -> None:
        pass


class LoggingAuditSink(AuditSink):
    """Writes entries as JSON lines to a Python logger.

    Denials are logged at WARNING, everything else at INFO.
    """

    def __init__(self, logger_name: str = "permgate.audit") -> None:
        self.logger = logging.getLogger(logger_name)

    def record(self, entry: AuditRecord) -> None:
        level = logging.WARNING if entry.decision.denied else logging.INFO
        self.logger.log(level, entry.model_dump_json())


class InMemoryAuditSink(AuditSink):
    """Keeps entries in a list. Useful for tests."""

    def __init__(self) -> None:
        self._entries: list[AuditRecord] = []
        self._lock = threading.Lock()

    def record(self, entry: AuditRecord) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> list[AuditRecord]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
