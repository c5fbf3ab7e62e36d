"""Audit sinks and dispatcher factory."""

from __future__ import annotations

from typing import Optional

from ..config import PermgateConfig, load_config
from ..errors import ConfigurationError
from .base import (
    AuditRecord,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
    NullAuditSink,
)
from .dispatcher import AuditDispatcher


def get_audit_sink(
    backend: Optional[str] = None, config: Optional[PermgateConfig] = None
) -> AuditSink:
    """Factory function to get the configured audit sink."""

    config = config or load_config()
    backend = (backend or config.audit.backend).lower()

    if backend == "null":
        return NullAuditSink()
    elif backend == "logging":
        return LoggingAuditSink(logger_name=config.audit.logger_name)
    elif backend == "memory":
        return InMemoryAuditSink()
    else:
        raise ConfigurationError(f"Unsupported audit backend: {backend}")


__all__ = [
    "AuditDispatcher",
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "get_audit_sink",
]
