"""Value types shared by every stage of an authorization check."""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field


class Outcome(str, Enum):
    """Result of an authorization check."""

    ALLOW = "allow"
    DENY = "deny"


class DecisionSource(str, Enum):
    """Stage of the check pipeline that produced a decision."""

    BEFORE_HOOK = "before_hook"
    REGISTRY = "registry"
    GRAPH_MEMBERSHIP = "graph_membership"
    AFTER_HOOK_OVERRIDE = "after_hook_override"
    DEFAULT_DENY = "default_deny"


class Principal(BaseModel):
    """Authenticated actor being checked.

    ``roles`` is optional: when left as ``None`` the engine resolves role
    membership from the configured graph data source, otherwise the supplied
    set is used as-is for the check.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    roles: Optional[FrozenSet[str]] = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def fingerprint(self) -> str:
        """Stable digest of the role set and attributes carried by this snapshot."""
        material = json.dumps(
            {
                "roles": sorted(self.roles) if self.roles is not None else None,
                "attributes": self.attributes,
            },
            sort_keys=True,
            default=repr,
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()[:16]


class Permission(BaseModel):
    """Named permission. Carries no logic of its own."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""


class Role(BaseModel):
    """Flat role holding a set of permission identifiers."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    permissions: FrozenSet[str] = Field(default_factory=frozenset)

    def grants(self, permission: str) -> bool:
        return permission in self.permissions


class Decision(BaseModel):
    """Immutable outcome of a check together with why and where it was made."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    reason: str = ""
    source: DecisionSource

    @classmethod
    def allow(
        cls, reason: str = "", source: DecisionSource = DecisionSource.REGISTRY
    ) -> "Decision":
        return cls(outcome=Outcome.ALLOW, reason=reason, source=source)

    @classmethod
    def deny(
        cls, reason: str = "", source: DecisionSource = DecisionSource.DEFAULT_DENY
    ) -> "Decision":
        return cls(outcome=Outcome.DENY, reason=reason, source=source)

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW

    @property
    def denied(self) -> bool:
        return self.outcome is Outcome.DENY

    def with_source(self, source: DecisionSource) -> "Decision":
        """Return a copy of this decision attributed to ``source``."""
        if source is self.source:
            return self
        return self.model_copy(update={"source": source})

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        text = f"{self.outcome.value.upper()} ({self.source.value})"
        return f"{text}: {self.reason}" if self.reason else text
