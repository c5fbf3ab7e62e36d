"""Exceptions raised by permgate."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Decision


class PermgateError(Exception):
    """Base class for all permgate errors."""


class DuplicateAbilityError(PermgateError, ValueError):
    """Raised when an ability name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Ability '{name}' is already registered")
        self.name = name


class AbilityNotFoundError(PermgateError, KeyError):
    """Raised by :meth:`AbilityRegistry.lookup` for unknown ability names."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Ability '{self.name}' is not registered"


class UnknownPrincipalError(PermgateError, ValueError):
    """Raised when a check is given a structurally invalid principal."""


class AccessDeniedError(PermgateError):
    """Raised by :meth:`Gate.authorize` when the check is denied."""

    def __init__(self, ability: str, decision: "Decision") -> None:
        super().__init__(f"Access to '{ability}' denied")
        self.ability = ability
        self.decision = decision


class ConfigurationError(PermgateError, ValueError):
    """Raised for unsupported backends or invalid configuration values."""
