"""Role-permission graph tests."""

from permgate.graph import RolePermissionGraph
from permgate.models import Principal
from permgate.sources import InMemoryGraphSource


class CountingSource(InMemoryGraphSource):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.principal_loads = 0
        self.role_loads = 0

    def load_roles_for_principal(self, principal_id: str) -> list[str]:
        self.principal_loads += 1
        return super().load_roles_for_principal(principal_id)

    def load_permissions_for_role(self, role_id: str) -> list[str]:
        self.role_loads += 1
        return super().load_permissions_for_role(role_id)


def _source() -> CountingSource:
    return CountingSource(
        assignments={"alice": ["editor", "viewer"], "bob": ["viewer"]},
        grants={"editor": ["edit-post"], "viewer": ["view-post"]},
    )


def test_has_permission_is_union_over_roles() -> None:
    graph = RolePermissionGraph(_source())
    alice = Principal(id="alice")

    assert graph.has_permission(alice, "edit-post")
    assert graph.has_permission(alice, "view-post")
    assert not graph.has_permission(Principal(id="bob"), "edit-post")
    assert not graph.has_permission(Principal(id="stranger"), "view-post")


def test_edges_are_loaded_once() -> None:
    source = _source()
    graph = RolePermissionGraph(source)
    alice = Principal(id="alice")

    graph.has_permission(alice, "missing")
    role_loads = source.role_loads
    for _ in range(3):
        graph.has_permission(alice, "missing")
        graph.roles_of(alice)

    assert source.principal_loads == 1
    assert role_loads == 2
    assert source.role_loads == role_loads


def test_supplied_roles_bypass_assignment_lookup() -> None:
    source = _source()
    graph = RolePermissionGraph(source)
    principal = Principal(id="alice", roles={"viewer"})

    assert graph.roles_of(principal) == frozenset({"viewer"})
    assert not graph.has_permission(principal, "edit-post")
    assert source.principal_loads == 0


def test_refresh_role_reads_new_grants() -> None:
    source = _source()
    graph = RolePermissionGraph(source)
    assert graph.permissions_of("viewer") == frozenset({"view-post"})

    source.grant_permission("viewer", "comment")
    assert "comment" not in graph.permissions_of("viewer")

    graph.refresh_role("viewer")
    assert graph.permissions_of("viewer") == frozenset({"view-post", "comment"})
    assert graph.role("viewer").grants("comment")


def test_refresh_principal_reads_new_assignments() -> None:
    source = _source()
    graph = RolePermissionGraph(source)
    bob = Principal(id="bob")
    assert graph.roles_of(bob) == frozenset({"viewer"})

    source.revoke_role("bob", "viewer")
    source.assign_role("bob", "editor")
    graph.refresh_principal("bob")

    assert graph.roles_of(bob) == frozenset({"editor"})
    assert graph.principals_with_role("editor") == {"bob"}


def test_principals_with_role_only_reports_loaded_principals() -> None:
    graph = RolePermissionGraph(_source())
    graph.roles_of(Principal(id="alice"))

    assert graph.principals_with_role("viewer") == {"alice"}


def test_clear_forces_reload() -> None:
    source = _source()
    graph = RolePermissionGraph(source)
    graph.roles_of(Principal(id="alice"))
    graph.clear()
    graph.roles_of(Principal(id="alice"))

    assert source.principal_loads == 2


def test_many_principals_load_once_each() -> None:
    source = CountingSource(
        assignments={f"user-{i}": ["member"] for i in range(20000)},
        grants={"member": ["read"]},
    )
    graph = RolePermissionGraph(source)

    for i in range(20000):
        assert graph.roles_of(Principal(id=f"user-{i}")) == frozenset({"member"})
    for i in range(0, 20000, 100):
        graph.roles_of(Principal(id=f"user-{i}"))

    assert source.principal_loads == 20000
    assert graph.loaded_principals == 20000


def test_max_principals_forgets_oldest_and_reloads() -> None:
    source = CountingSource(
        assignments={f"user-{i}": ["member"] for i in range(50)},
    )
    graph = RolePermissionGraph(source, max_principals=10)

    for i in range(50):
        graph.roles_of(Principal(id=f"user-{i}"))
    assert graph.loaded_principals == 10
    assert graph.principals_with_role("member") == {f"user-{i}" for i in range(40, 50)}

    assert graph.roles_of(Principal(id="user-0")) == frozenset({"member"})
    assert source.principal_loads == 51
    assert graph.loaded_principals == 10


def test_refresh_of_loaded_principal_does_not_evict() -> None:
    graph = RolePermissionGraph(_source(), max_principals=2)
    graph.roles_of(Principal(id="alice"))
    graph.roles_of(Principal(id="bob"))
    graph.refresh_principal("bob")

    assert graph.loaded_principals == 2
    assert graph.principals_with_role("viewer") == {"alice", "bob"}
