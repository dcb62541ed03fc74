"""
Entity kernel CLI.

Command-line interface for common operations: schema creation, inspecting
registrations, hooks and policies, issuing development tokens.

Usage:
    entity-kernel db-create
    entity-kernel entities
    entity-kernel policies --subject user-1
    entity-kernel check user-1 /api/v1/courses GET --role user
    entity-kernel token user-1 --role administrator
"""

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from entity_shared.config.settings import settings

app = typer.Typer(
    name="entity-kernel",
    help="Entity kernel administration CLI",
    add_completion=False,
)
console = Console()


def _inspection_kernel():
    """Kernel with in-memory policies: reads registrations without touching the store."""
    from entity_shared.infrastructure.db import SessionLocal
    from entity_api.core.kernel import build_kernel
    from entity_api.services.permissions import MemoryPolicyAdapter

    return build_kernel(SessionLocal, policy_adapter=MemoryPolicyAdapter())


def _store_enforcer():
    from entity_shared.infrastructure.db import SessionLocal
    from entity_api.services.permissions import Enforcer, SqlPolicyAdapter

    return Enforcer(SqlPolicyAdapter(SessionLocal))


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def db_create():
    """Create missing tables (entities, join tables, policy rules)."""
    from entity_shared.infrastructure.db import engine
    from entity_api.models import Base

    console.print(f"[blue]Creating tables on: {engine.url.render_as_string(hide_password=True)}[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        console.print(f"[red]✗ Schema creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ {len(Base.metadata.tables)} tables created/verified[/green]")


# =============================================================================
# Registry Commands
# =============================================================================


@app.command()
def entities():
    """List registered entities and their routes."""
    kernel = _inspection_kernel()

    table = Table(title="Registered Entities")
    table.add_column("Entity", style="cyan")
    table.add_column("Path", style="green")
    table.add_column("Sub-entities")
    table.add_column("Filters")
    table.add_column("Role defaults")

    for descriptor in kernel.registry.list():
        table.add_row(
            descriptor.entity_name,
            descriptor.collection_path,
            ", ".join(descriptor.sub_entities) or "-",
            ", ".join(f.filter_name for f in descriptor.relationship_filters) or "-",
            ", ".join(f"{role}={action}" for role, action in descriptor.default_roles.items()),
        )

    console.print(table)


@app.command()
def hooks():
    """List registered lifecycle hooks in registration order."""
    kernel = _inspection_kernel()

    table = Table(title="Lifecycle Hooks")
    table.add_column("Name", style="cyan")
    table.add_column("Entity", style="green")
    table.add_column("Phases")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled")

    for entry in kernel.hooks.list_hooks():
        table.add_row(
            entry["name"],
            entry["entityName"],
            ", ".join(entry["phases"]),
            str(entry["priority"]),
            "[green]yes[/green]" if entry["enabled"] else "[red]no[/red]",
        )

    console.print(table)


# =============================================================================
# Authorization Commands
# =============================================================================


@app.command()
def policies(
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Only this subject"),
    obj: Optional[str] = typer.Option(None, "--object", "-o", help="Only this object"),
):
    """Show stored authorization policies."""
    enforcer = _store_enforcer()
    rules = enforcer.get_filtered_policy(subject=subject, obj=obj)

    if not rules:
        console.print("[yellow]No policies match[/yellow]")
        return

    table = Table(title=f"Policies ({len(rules)})")
    table.add_column("Subject", style="cyan")
    table.add_column("Object", style="green")
    table.add_column("Action")

    for rule_subject, rule_object, rule_action in rules:
        table.add_row(rule_subject, rule_object, rule_action)

    console.print(table)


@app.command()
def check(
    user_id: str = typer.Argument(..., help="Subject to check"),
    path: str = typer.Argument(..., help="Request path, e.g. /api/v1/courses"),
    method: str = typer.Argument("GET", help="HTTP method"),
    role: List[str] = typer.Option([], "--role", "-r", help="Role held by the subject (repeatable)"),
):
    """Evaluate (subject, path, method) against stored policies."""
    enforcer = _store_enforcer()
    allowed = enforcer.enforce(user_id, path, method.upper(), roles=role)

    if allowed:
        console.print(f"[green]✓ ALLOW {method.upper()} {path} for {user_id}[/green]")
    else:
        console.print(f"[red]✗ DENY {method.upper()} {path} for {user_id}[/red]")
        raise typer.Exit(1)


@app.command()
def token(
    user_id: str = typer.Argument(..., help="Subject (sub claim)"),
    role: List[str] = typer.Option([], "--role", "-r", help="Role claim (repeatable)"),
    ttl: int = typer.Option(3600, help="Lifetime in seconds"),
):
    """Issue a bearer token for local development."""
    from entity_shared.security.auth import sign_jwt

    if settings.environment == "production":
        console.print("[red]Refusing to issue tokens in production[/red]")
        raise typer.Exit(1)

    typer.echo(sign_jwt({"sub": user_id, "roles": list(role)}, ttl_seconds=ttl))


# =============================================================================
# Health Commands
# =============================================================================


@app.command()
def health(
    url: str = typer.Option(
        f"http://localhost:{settings.api_port}/api/health", help="Health endpoint"
    ),
):
    """Check API health."""
    import httpx

    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Unreachable: {e}[/red]")
        raise typer.Exit(1)

    data = response.json()
    table = Table(title="Entity API Health")
    table.add_column("Check", style="cyan")
    table.add_column("Status")

    table.add_row("service", data.get("status", "?"))
    for name, check_result in data.get("dependencies", {}).items():
        table.add_row(name, check_result.get("status", "?"))
    console.print(table)

    if response.status_code != 200:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
