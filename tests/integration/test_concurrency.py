"""Concurrent checks against a changing role graph."""

import threading
from concurrent.futures import ThreadPoolExecutor

from permgate import (
    AbilityRegistry,
    DecisionCache,
    Gate,
    InMemoryGraphSource,
    Principal,
    RolePermissionGraph,
)
from permgate.audit import AuditDispatcher, InMemoryAuditSink


def test_parallel_checks_agree_and_are_audited():
    source = InMemoryGraphSource(
        assignments={f"user-{i}": ["editor"] for i in range(20)},
        grants={"editor": ["edit-post"]},
    )
    sink = InMemoryAuditSink()
    gate = Gate(
        AbilityRegistry(),
        RolePermissionGraph(source),
        audit=AuditDispatcher(sink),
    )

    def run(i: int) -> bool:
        return gate.allows(Principal(id=f"user-{i % 20}"), "edit-post")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(run, range(400)))

    gate.audit.flush()
    assert all(results)
    assert len(sink.entries) == 400
    stats = gate.stats
    assert stats.checks == 400
    assert stats.cache_hits + stats.cache_misses == 400
    gate.close()


def test_predicate_querying_the_graph_does_not_deadlock():
    source = InMemoryGraphSource(
        assignments={"alice": ["editor"]}, grants={"editor": ["edit-post"]}
    )
    graph = RolePermissionGraph(source)
    registry = AbilityRegistry()
    registry.register("edit-any", lambda p, r: graph.has_permission(p, "edit-post"))
    gate = Gate(registry, graph)

    def refresher() -> None:
        for _ in range(50):
            gate.invalidate(role_id="editor")

    thread = threading.Thread(target=refresher)
    thread.start()
    results = [gate.allows(Principal(id="alice"), "edit-any") for _ in range(200)]
    thread.join(timeout=10)

    assert not thread.is_alive()
    assert all(results)


def test_no_stale_decision_after_invalidation_under_load():
    source = InMemoryGraphSource(assignments={"alice": ["editor"]})
    gate = Gate(AbilityRegistry(), RolePermissionGraph(source), cache=DecisionCache())
    alice = Principal(id="alice")
    stop = threading.Event()

    def hammer() -> None:
        while not stop.is_set():
            gate.check(alice, "delete-post")

    workers = [threading.Thread(target=hammer) for _ in range(4)]
    for w in workers:
        w.start()
    try:
        source.grant_permission("editor", "delete-post")
        gate.invalidate(role_id="editor")
        # every check issued after the invalidation must see the grant
        assert all(gate.allows(alice, "delete-post") for _ in range(100))
    finally:
        stop.set()
        for w in workers:
            w.join()
