"""Decision engine composing hooks, evaluation, caching and auditing."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from pydantic import BaseModel

from .audit import AuditDispatcher, AuditRecord, AuditSink
from .cache import CacheKey, DecisionCache, resource_fingerprint
from .errors import AccessDeniedError, UnknownPrincipalError
from .evaluator import RuleEvaluator, coerce_decision
from .graph import RolePermissionGraph
from .models import Decision, DecisionSource, Principal
from .registry import AbilityRegistry, Predicate

logger = logging.getLogger(__name__)

HookResult = Union[Decision, bool, None]
BeforeHook = Callable[[Principal, str, Any], HookResult]
AfterHook = Callable[[Principal, str, Any, Decision], HookResult]
CheckListener = Callable[[Principal, str, Decision, bool], None]


class GateStats(BaseModel):
    """Counters describing the work a gate has done."""

    checks: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    evaluations: int = 0
    evaluator_faults: int = 0


class Gate:
    """Single entry point for authorization checks.

    A check runs through these stages:

    1. cache lookup, returning a live entry without running anything else;
    2. before-hooks in registration order, the first non-``None`` result
       short-circuits the rest of the pipeline;
    3. the :class:`RuleEvaluator` (registered predicate, else role membership);
    4. after-hooks in registration order, each seeing the decision so far and
       the last one to return a decision winning;
    5. audit submission and caching of the final decision.

    Exceptions raised by predicates or hooks never reach the caller; they
    turn into an uncached ``DENY`` attributed to ``DEFAULT_DENY``.
    """

    def __init__(
        self,
        registry: AbilityRegistry,
        graph: RolePermissionGraph,
        *,
        cache: Optional[DecisionCache] = None,
        audit: Union[AuditDispatcher, AuditSink, None] = None,
        use_cache: bool = True,
    ) -> None:
        self.registry = registry
        self.graph = graph
        self.evaluator = RuleEvaluator(registry, graph)
        if cache is None and use_cache:
            cache = DecisionCache()
        self.cache = cache
        if isinstance(audit, AuditSink):
            audit = AuditDispatcher(audit)
        self.audit = audit
        self._before_hooks: Tuple[BeforeHook, ...] = ()
        self._after_hooks: Tuple[AfterHook, ...] = ()
        self._listeners: Tuple[CheckListener, ...] = ()
        self._stats = GateStats()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registration
    def define(
        self, name: str, predicate: Optional[Predicate] = None, **kwargs: Any
    ) -> Any:
        """Register an ability; usable directly or as a decorator."""
        if predicate is None:
            return self.registry.define(name, **kwargs)
        return self.registry.register(name, predicate, **kwargs)

    def before(self, hook: BeforeHook) -> BeforeHook:
        """Append a before-hook. Returns ``hook`` so it can decorate."""
        with self._lock:
            self._before_hooks = self._before_hooks + (hook,)
        return hook

    def after(self, hook: AfterHook) -> AfterHook:
        """Append an after-hook. Returns ``hook`` so it can decorate."""
        with self._lock:
            self._after_hooks = self._after_hooks + (hook,)
        return hook

    def add_listener(self, listener: CheckListener) -> CheckListener:
        """Call ``listener(principal, ability, decision, cached)`` after every check."""
        with self._lock:
            self._listeners = self._listeners + (listener,)
        return listener

    # ------------------------------------------------------------------
    # Checks
    def check(
        self, principal: Principal, ability: str, resource: Any = None
    ) -> Decision:
        """Decide whether ``principal`` may perform ``ability`` on ``resource``.

        Raises:
            UnknownPrincipalError: If ``principal`` is structurally invalid.
        """
        _validate_principal(principal)
        if not isinstance(ability, str):
            raise TypeError(f"ability must be a string, got {type(ability).__name__}")

        fingerprint = resource_fingerprint(resource)
        key: Optional[CacheKey] = None
        if self.cache is not None and fingerprint is not None:
            key = (principal.id, principal.fingerprint(), ability, fingerprint)
            cached = self.cache.get(key)
            if cached is not None:
                self._count(checks=1, cache_hits=1)
                logger.debug(f"Cache hit for {principal.id}:{ability}")
                self._finish(principal, ability, fingerprint, cached, cached=True)
                return cached
            self._count(cache_misses=1)

        generation = self.cache.generation if self.cache is not None else 0
        decision, faulted = self._decide(principal, ability, resource)
        self._count(checks=1)

        if key is not None and not faulted:
            self._store(key, principal, decision, generation)
        self._finish(principal, ability, fingerprint, decision, cached=False)
        return decision

    def allows(self, principal: Principal, ability: str, resource: Any = None) -> bool:
        return self.check(principal, ability, resource).allowed

    def denies(self, principal: Principal, ability: str, resource: Any = None) -> bool:
        return self.check(principal, ability, resource).denied

    def authorize(
        self, principal: Principal, ability: str, resource: Any = None
    ) -> Decision:
        """Return the allowing decision or raise :class:`AccessDeniedError`."""
        decision = self.check(principal, ability, resource)
        if decision.denied:
            raise AccessDeniedError(ability, decision)
        return decision

    def allows_any(
        self, principal: Principal, abilities: Iterable[str], resource: Any = None
    ) -> bool:
        return any(self.allows(principal, a, resource) for a in abilities)

    def allows_all(
        self, principal: Principal, abilities: Iterable[str], resource: Any = None
    ) -> bool:
        return all(self.allows(principal, a, resource) for a in abilities)

    def denies_all(
        self, principal: Principal, abilities: Iterable[str], resource: Any = None
    ) -> bool:
        return not self.allows_any(principal, abilities, resource)

    def for_principal(self, principal: Principal) -> "PrincipalGate":
        _validate_principal(principal)
        return PrincipalGate(self, principal)

    # ------------------------------------------------------------------
    # Invalidation
    def invalidate(
        self, principal_id: Optional[str] = None, role_id: Optional[str] = None
    ) -> int:
        """Refresh the graph and evict cached decisions after an edge change.

        Must be called once the change is persisted and before any check that
        should observe it. Returns the number of evicted cache entries.
        """
        if principal_id is None and role_id is None:
            raise ValueError("invalidate() needs a principal_id or a role_id")
        evicted = 0
        if principal_id is not None:
            evicted += self.invalidate_principal(principal_id)
        if role_id is not None:
            evicted += self.invalidate_role(role_id)
        return evicted

    def invalidate_principal(self, principal_id: str) -> int:
        self.graph.refresh_principal(principal_id)
        evicted = self.cache.invalidate_principal(principal_id) if self.cache else 0
        logger.info(f"Invalidated principal {principal_id} ({evicted} cached decisions)")
        return evicted

    def invalidate_role(self, role_id: str) -> int:
        self.graph.refresh_role(role_id)
        evicted = self.cache.invalidate_role(role_id) if self.cache else 0
        logger.info(f"Invalidated role {role_id} ({evicted} cached decisions)")
        return evicted

    def flush(self) -> None:
        """Forget every loaded edge and cached decision."""
        self.graph.clear()
        if self.cache is not None:
            self.cache.clear()
        logger.info("Flushed graph snapshot and decision cache")

    # ------------------------------------------------------------------
    @property
    def stats(self) -> GateStats:
        with self._lock:
            return self._stats.model_copy()

    def close(self) -> None:
        if self.audit is not None:
            self.audit.stop()

    def __enter__(self) -> "Gate":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _decide(
        self, principal: Principal, ability: str, resource: Any
    ) -> Tuple[Decision, bool]:
        try:
            decision = self._run_before_hooks(principal, ability, resource)
            if decision is None:
                self._count(evaluations=1)
                decision = self.evaluator.evaluate(principal, ability, resource)
            return self._run_after_hooks(principal, ability, resource, decision), False
        except Exception as exc:
            self._count(evaluator_faults=1)
            logger.exception(f"Evaluator failed for {principal.id}:{ability}")
            return (
                Decision.deny(
                    f"evaluator panic: {exc}", source=DecisionSource.DEFAULT_DENY
                ),
                True,
            )

    def _run_before_hooks(
        self, principal: Principal, ability: str, resource: Any
    ) -> Optional[Decision]:
        for hook in self._before_hooks:
            decision = coerce_decision(
                hook(principal, ability, resource),
                ability=ability,
                source=DecisionSource.BEFORE_HOOK,
            )
            if decision is not None:
                return decision
        return None

    def _run_after_hooks(
        self, principal: Principal, ability: str, resource: Any, decision: Decision
    ) -> Decision:
        for hook in self._after_hooks:
            result = hook(principal, ability, resource, decision)
            # returning the decision unchanged, or agreeing with it, passes through
            if result is None or result == decision:
                continue
            if isinstance(result, bool) and result == decision.allowed:
                continue
            decision = coerce_decision(
                result, ability=ability, source=DecisionSource.AFTER_HOOK_OVERRIDE
            )
        return decision

    def _store(
        self,
        key: CacheKey,
        principal: Principal,
        decision: Decision,
        generation: int,
    ) -> None:
        try:
            roles = self.graph.roles_of(principal)
        except Exception as e:
            logger.error(f"Not caching decision for {principal.id}: {e}")
            return
        self.cache.put(key, decision, roles=roles, generation=generation)

    def _finish(
        self,
        principal: Principal,
        ability: str,
        fingerprint: Optional[str],
        decision: Decision,
        cached: bool,
    ) -> None:
        if self.audit is not None:
            self.audit.submit(
                AuditRecord(
                    principal_id=principal.id,
                    ability=ability,
                    resource_fingerprint=fingerprint,
                    decision=decision,
                    cached=cached,
                )
            )
        for listener in self._listeners:
            try:
                listener(principal, ability, decision, cached)
            except Exception as e:
                logger.error(f"Check listener {listener!r} failed: {e}")

    def _count(self, **increments: int) -> None:
        with self._lock:
            for name, value in increments.items():
                setattr(self._stats, name, getattr(self._stats, name) + value)


class PrincipalGate:
    """A :class:`Gate` bound to one principal."""

    def __init__(self, gate: Gate, principal: Principal) -> None:
        self.gate = gate
        self.principal = principal

    def check(self, ability: str, resource: Any = None) -> Decision:
        return self.gate.check(self.principal, ability, resource)

    def allows(self, ability: str, resource: Any = None) -> bool:
        return self.gate.allows(self.principal, ability, resource)

    def denies(self, ability: str, resource: Any = None) -> bool:
        return self.gate.denies(self.principal, ability, resource)

    def authorize(self, ability: str, resource: Any = None) -> Decision:
        return self.gate.authorize(self.principal, ability, resource)

    def allows_any(self, abilities: Iterable[str], resource: Any = None) -> bool:
        return self.gate.allows_any(self.principal, abilities, resource)

    def allows_all(self, abilities: Iterable[str], resource: Any = None) -> bool:
        return self.gate.allows_all(self.principal, abilities, resource)

    def denies_all(self, abilities: Iterable[str], resource: Any = None) -> bool:
        return self.gate.denies_all(self.principal, abilities, resource)


def _validate_principal(principal: Any) -> None:
    if not isinstance(principal, Principal):
        raise UnknownPrincipalError(
            f"expected a Principal, got {type(principal).__name__}"
        )
    if not principal.id or not principal.id.strip():
        raise UnknownPrincipalError("principal id must be a non-empty string")
