"""Registry of named ability definitions."""

from __future__ import annotations

import inspect
import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from .errors import AbilityNotFoundError, DuplicateAbilityError
from .models import Decision, Principal

logger = logging.getLogger(__name__)

Predicate = Callable[[Principal, Any], Union[Decision, bool, None]]


class AbilityDefinition(BaseModel):
    """A named predicate together with the permissions it refers to."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    predicate: Callable[..., Any]
    permissions: tuple[str, ...] = ()
    description: Optional[str] = None


class AbilityRegistry:
    """Holds ability definitions by exact name.

    Definitions cannot be replaced or removed once registered. Writes build a
    new mapping and swap it in under a lock, so readers always see either the
    old or the new mapping and never take a lock themselves.
    """

    def __init__(self) -> None:
        self._abilities: Mapping[str, AbilityDefinition] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def register(
        self,
        name: str,
        predicate: Predicate,
        *,
        permissions: Iterable[str] = (),
        description: Optional[str] = None,
    ) -> AbilityDefinition:
        """Register ``predicate`` under ``name``.

        Raises:
            DuplicateAbilityError: If ``name`` is already registered.
        """
        definition = self._build(name, predicate, permissions, description)
        self._install([definition])
        return definition

    def define(
        self,
        name: str,
        *,
        permissions: Iterable[str] = (),
        description: Optional[str] = None,
    ) -> Callable[[Predicate], Predicate]:
        """Decorator form of :meth:`register`."""

        def decorator(predicate: Predicate) -> Predicate:
            self.register(
                name, predicate, permissions=permissions, description=description
            )
            return predicate

        return decorator

    def register_policy(self, prefix: str, policy: Any) -> list[str]:
        """Register every public method of ``policy`` as ``<prefix>.<method>``.

        A policy groups the abilities of one resource type, e.g. a ``PostPolicy``
        with ``update`` and ``delete`` methods registered under ``post``. All
        names are validated before any of them is installed.
        """
        if not prefix:
            raise ValueError("policy prefix must be a non-empty string")
        definitions = [
            self._build(f"{prefix}.{attr}", member, (), None)
            for attr, member in inspect.getmembers(policy, callable)
            if not attr.startswith("_") and not inspect.isclass(member)
        ]
        if not definitions:
            raise ValueError(f"policy {policy!r} exposes no public methods")
        self._install(definitions)
        return [d.name for d in definitions]

    def lookup(self, name: str) -> AbilityDefinition:
        """Return the definition registered under ``name``.

        Raises:
            AbilityNotFoundError: If no ability has that name.
        """
        definition = self._abilities.get(name)
        if definition is None:
            raise AbilityNotFoundError(name)
        return definition

    def get(self, name: str) -> Optional[AbilityDefinition]:
        return self._abilities.get(name)

    def names(self) -> list[str]:
        return sorted(self._abilities)

    def __contains__(self, name: object) -> bool:
        return name in self._abilities

    def __len__(self) -> int:
        return len(self._abilities)

    def __iter__(self) -> Iterator[AbilityDefinition]:
        return iter(list(self._abilities.values()))

    # ------------------------------------------------------------------
    @staticmethod
    def _build(
        name: str,
        predicate: Predicate,
        permissions: Iterable[str],
        description: Optional[str],
    ) -> AbilityDefinition:
        if not isinstance(name, str) or not name:
            raise ValueError("ability name must be a non-empty string")
        if not callable(predicate):
            raise TypeError(f"predicate for ability '{name}' is not callable")
        return AbilityDefinition(
            name=name,
            predicate=predicate,
            permissions=tuple(permissions),
            description=description or inspect.getdoc(predicate),
        )

    def _install(self, definitions: list[AbilityDefinition]) -> None:
        with self._write_lock:
            updated = dict(self._abilities)
            for definition in definitions:
                if definition.name in updated:
                    raise DuplicateAbilityError(definition.name)
                updated[definition.name] = definition
            self._abilities = MappingProxyType(updated)
        for definition in definitions:
            logger.debug(f"Registered ability {definition.name}")
