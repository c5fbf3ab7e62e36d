"""Resolves a single ability against the registry or the role graph."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .graph import RolePermissionGraph
from .models import Decision, DecisionSource, Principal
from .registry import AbilityRegistry

logger = logging.getLogger(__name__)


def coerce_decision(
    result: Any, *, ability: str, source: DecisionSource
) -> Optional[Decision]:
    """Normalise a predicate or hook return value into a :class:`Decision`.

    ``None`` means the callable had no opinion. Booleans are wrapped with a
    generic reason; decisions are re-attributed to ``source``.
    """
    if result is None:
        return None
    if isinstance(result, Decision):
        return result.with_source(source)
    if isinstance(result, bool):
        if result:
            return Decision.allow(f"'{ability}' allowed by {source.value}", source=source)
        return Decision.deny(f"'{ability}' denied by {source.value}", source=source)
    raise TypeError(
        f"expected Decision, bool or None for '{ability}', got {type(result).__name__}"
    )


class RuleEvaluator:
    """Evaluates one ability without hooks or caching."""

    def __init__(self, registry: AbilityRegistry, graph: RolePermissionGraph) -> None:
        self._registry = registry
        self._graph = graph

    def evaluate(
        self, principal: Principal, ability: str, resource: Any = None
    ) -> Decision:
        definition = self._registry.get(ability)
        if definition is not None:
            result = definition.predicate(principal, resource)
            decision = coerce_decision(
                result, ability=ability, source=DecisionSource.REGISTRY
            )
            if decision is None:
                return Decision.deny(
                    f"'{ability}' returned no decision", source=DecisionSource.REGISTRY
                )
            return decision

        # unregistered names are treated as raw permission identifiers
        if self._graph.has_permission(principal, ability):
            return Decision.allow(
                f"'{ability}' granted through role membership",
                source=DecisionSource.GRAPH_MEMBERSHIP,
            )
        logger.debug(f"No rule grants {ability} to principal {principal.id}")
        return Decision.deny(
            f"no rule grants '{ability}'", source=DecisionSource.DEFAULT_DENY
        )
