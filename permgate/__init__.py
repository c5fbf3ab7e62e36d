"""permgate: authorization decisions for principals, abilities and resources."""

from __future__ import annotations

from typing import Optional

from .audit import AuditDispatcher, AuditRecord, AuditSink, get_audit_sink
from .cache import DecisionCache, resource_fingerprint
from .config import PermgateConfig, load_config
from .errors import (
    AbilityNotFoundError,
    AccessDeniedError,
    ConfigurationError,
    DuplicateAbilityError,
    PermgateError,
    UnknownPrincipalError,
)
from .evaluator import RuleEvaluator
from .gate import Gate, GateStats, PrincipalGate
from .graph import RolePermissionGraph
from .models import Decision, DecisionSource, Outcome, Permission, Principal, Role
from .registry import AbilityDefinition, AbilityRegistry
from .sources import GraphDataSource, InMemoryGraphSource, get_source

__version__ = "0.1.0"


def build_gate(
    config: Optional[PermgateConfig] = None,
    source: Optional[GraphDataSource] = None,
    registry: Optional[AbilityRegistry] = None,
    audit_sink: Optional[AuditSink] = None,
) -> Gate:
    """Assemble a :class:`Gate` from configuration.

    Collaborators that are not passed explicitly are created from ``config``
    (or from :func:`load_config` when no config is given).
    """

    config = config or load_config()
    source = source or get_source(config=config)
    cache = None
    if config.cache.enabled:
        cache = DecisionCache(
            ttl_seconds=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        )
    dispatcher = AuditDispatcher(
        audit_sink or get_audit_sink(config=config),
        async_processing=config.audit.async_processing,
        max_queue_size=config.audit.max_queue_size,
    )
    return Gate(
        registry or AbilityRegistry(),
        RolePermissionGraph(source, max_principals=config.graph.max_principals),
        cache=cache,
        audit=dispatcher,
        use_cache=config.cache.enabled,
    )


__all__ = [
    "AbilityDefinition",
    "AbilityNotFoundError",
    "AbilityRegistry",
    "AccessDeniedError",
    "AuditDispatcher",
    "AuditRecord",
    "AuditSink",
    "ConfigurationError",
    "Decision",
    "DecisionCache",
    "DecisionSource",
    "DuplicateAbilityError",
    "Gate",
    "GateStats",
    "GraphDataSource",
    "InMemoryGraphSource",
    "Outcome",
    "Permission",
    "PermgateConfig",
    "PermgateError",
    "Principal",
    "PrincipalGate",
    "Role",
    "RolePermissionGraph",
    "RuleEvaluator",
    "UnknownPrincipalError",
    "build_gate",
    "get_audit_sink",
    "get_source",
    "load_config",
    "resource_fingerprint",
]
