from typer.testing import CliRunner

import permgate.sources as sources
from permgate import UnknownPrincipalError
from permgate.cli import app
from permgate.sources import InMemoryGraphSource


def _setup_source(monkeypatch) -> InMemoryGraphSource:
    source = InMemoryGraphSource(
        assignments={"alice": ["editor", "reviewer"]},
        grants={"editor": ["edit-post", "publish-post"]},
    )
    monkeypatch.setattr(sources, "_source_instance", source)
    monkeypatch.delenv("PERMGATE_DATABASE_URL", raising=False)
    return source


def test_principal_roles_command(monkeypatch):
    _setup_source(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["principal", "roles", "alice"])
    assert result.exit_code == 0, result.output
    assert result.stdout.split() == ["editor", "reviewer"]

    result = runner.invoke(app, ["principal", "roles", "nobody"])
    assert result.exit_code == 0
    assert "No roles assigned" in result.stdout


def test_role_permissions_command(monkeypatch):
    _setup_source(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["role", "permissions", "editor"])
    assert result.exit_code == 0, result.output
    assert result.stdout.split() == ["edit-post", "publish-post"]

    result = runner.invoke(app, ["role", "permissions", "reviewer"])
    assert "No permissions granted" in result.stdout


def test_check_command_allow_and_deny(monkeypatch):
    _setup_source(monkeypatch)
    runner = CliRunner()

    allowed = runner.invoke(app, ["check", "alice", "edit-post"])
    assert allowed.exit_code == 0, allowed.output
    assert "ALLOW (graph_membership)" in allowed.stdout

    denied = runner.invoke(app, ["check", "alice", "delete-post"])
    assert denied.exit_code == 1
    assert "DENY (default_deny)" in denied.stdout


def test_check_command_with_explicit_roles(monkeypatch):
    _setup_source(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["check", "bob", "publish-post", "--role", "editor"])
    assert result.exit_code == 0, result.output
    assert "ALLOW" in result.stdout

    result = runner.invoke(app, ["check", "alice", "publish-post", "-r", "reviewer"])
    assert result.exit_code == 1


def test_check_command_rejects_blank_principal(monkeypatch):
    _setup_source(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["check", " ", "edit-post"])
    assert result.exit_code == 2
    assert "Invalid principal" in result.output
    assert not isinstance(result.exception, UnknownPrincipalError)
