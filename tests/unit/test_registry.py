"""Ability registry tests."""

import threading

import pytest

from permgate.errors import AbilityNotFoundError, DuplicateAbilityError
from permgate.registry import AbilityRegistry


def test_register_and_lookup() -> None:
    registry = AbilityRegistry()

    def update_post(principal, post):
        """Owners may update their posts."""
        return principal.id == post.owner_id

    definition = registry.register("update-post", update_post, permissions=["edit-post"])

    assert registry.lookup("update-post") is definition
    assert definition.permissions == ("edit-post",)
    assert definition.description == "Owners may update their posts."
    assert "update-post" in registry
    assert len(registry) == 1


def test_lookup_is_exact_match_only() -> None:
    registry = AbilityRegistry()
    registry.register("post.update", lambda p, r: True)

    with pytest.raises(AbilityNotFoundError):
        registry.lookup("post.*")
    assert registry.get("post") is None


def test_duplicate_registration_fails() -> None:
    registry = AbilityRegistry()
    original = registry.register("view", lambda p, r: True)

    with pytest.raises(DuplicateAbilityError) as exc_info:
        registry.register("view", lambda p, r: False)

    assert exc_info.value.name == "view"
    assert registry.lookup("view") is original


def test_invalid_registrations() -> None:
    registry = AbilityRegistry()
    with pytest.raises(ValueError):
        registry.register("", lambda p, r: True)
    with pytest.raises(TypeError):
        registry.register("view", "not callable")


def test_define_decorator_returns_function() -> None:
    registry = AbilityRegistry()

    @registry.define("publish", description="Publish a post")
    def publish(principal, post):
        return True

    assert callable(publish)
    assert registry.lookup("publish").predicate is publish
    assert registry.lookup("publish").description == "Publish a post"


class PostPolicy:
    def update(self, principal, post):
        return principal.id == post["owner_id"]

    def delete(self, principal, post):
        return False

    def _helper(self):
        return None


def test_register_policy() -> None:
    registry = AbilityRegistry()
    names = registry.register_policy("post", PostPolicy())

    assert sorted(names) == ["post.delete", "post.update"]
    assert registry.names() == ["post.delete", "post.update"]


def test_register_policy_is_all_or_nothing() -> None:
    registry = AbilityRegistry()
    registry.register("post.delete", lambda p, r: True)

    with pytest.raises(DuplicateAbilityError):
        registry.register_policy("post", PostPolicy())

    assert "post.update" not in registry


def test_concurrent_registration_keeps_every_ability() -> None:
    registry = AbilityRegistry()

    def register_batch(offset: int) -> None:
        for i in range(50):
            registry.register(f"ability-{offset}-{i}", lambda p, r: True)

    threads = [threading.Thread(target=register_batch, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry) == 400
