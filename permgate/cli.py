"""Command line interface for inspecting the role graph and running checks."""

from __future__ import annotations

from typing import List, Optional

import typer

from permgate import Principal, UnknownPrincipalError, build_gate, get_source

app = typer.Typer(help="CLI for permgate authorization checks")

principal_app = typer.Typer(help="Commands for inspecting principals")
role_app = typer.Typer(help="Commands for inspecting roles")

app.add_typer(principal_app, name="principal")
app.add_typer(role_app, name="role")


@app.callback()
def main() -> None:
    """permgate CLI entry point."""
    pass


@principal_app.command("roles")
def principal_roles(principal_id: str) -> None:
    """
    List the roles assigned to a principal in the configured data source.

    Example:
        permgate principal roles alice
        # Output: editor
        #         reviewer
    """
    source = get_source()
    roles = source.load_roles_for_principal(principal_id)
    if not roles:
        typer.echo("No roles assigned")
        return
    for role_id in roles:
        typer.echo(role_id)


@role_app.command("permissions")
def role_permissions(role_id: str) -> None:
    """
    List the permissions granted to a role in the configured data source.

    Example:
        permgate role permissions editor
        # Output: edit-post
        #         publish-post
    """
    source = get_source()
    permissions = source.load_permissions_for_role(role_id)
    if not permissions:
        typer.echo("No permissions granted")
        return
    for permission_id in permissions:
        typer.echo(permission_id)


@app.command("check")
def check(
    principal_id: str,
    ability: str,
    role: Optional[List[str]] = typer.Option(
        None,
        "--role",
        "-r",
        help="Role to check with instead of the stored assignments (repeatable)",
    ),
) -> None:
    """
    Check an ability for a principal through role membership.

    Only graph membership is consulted; abilities defined in application code
    are not available from the command line. Exits with code 1 when denied
    and 2 when the principal id is invalid.

    Example:
        permgate check alice edit-post
        # Output: ALLOW (graph_membership): 'edit-post' granted through role membership
        permgate check bob edit-post --role viewer
    """
    principal = Principal(id=principal_id, roles=frozenset(role) if role else None)
    with build_gate(source=get_source()) as gate:
        try:
            decision = gate.check(principal, ability)
        except UnknownPrincipalError as e:
            typer.secho(f"Invalid principal: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2)
    color = typer.colors.GREEN if decision.allowed else typer.colors.RED
    typer.secho(
        f"{decision.outcome.value.upper()} ({decision.source.value}): {decision.reason}",
        fg=color,
    )
    if decision.denied:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
