"""Matriz server CLI."""

import asyncio
import logging
import subprocess
import uuid
from pathlib import Path

import typer
from pydantic import SecretStr
from rich.console import Console
from rich.table import Table

from matriz import __version__
from matriz.auth.keys import generate_api_key
from matriz.config import Settings, get_settings

app = typer.Typer(
    name="matriz",
    help="Matriz - webhook dispatcher and notification functions",
    no_args_is_help=True,
)

console = Console()

# Subcommands
db_app = typer.Typer(help="Database management commands")
subscriptions_app = typer.Typer(help="Webhook subscription commands")

app.add_typer(db_app, name="db")
app.add_typer(subscriptions_app, name="subscriptions")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_db(coro_fn):
    """Run an async database task and dispose of the engine afterwards.

    Each CLI invocation gets its own event loop, so pooled connections must
    not outlive it.
    """
    from matriz.db.session import close_engine
    from matriz.http_client import close_http_client

    async def runner():
        try:
            return await coro_fn()
        finally:
            await close_http_client()
            await close_engine()

    return asyncio.run(runner())


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)

    bind_host = host or settings.api_host
    bind_port = port or settings.api_port
    console.print(f"[green]API server starting on {bind_host}:{bind_port}[/green]")
    if settings.delivery_log_cleanup_enabled:
        console.print(
            f"[green]Cleanup worker enabled "
            f"(interval: {settings.delivery_log_cleanup_interval_hours}h)[/green]"
        )

    uvicorn.run(
        "matriz.main:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def version():
    """Show version information."""
    console.print(f"Matriz version {__version__}")


@app.command()
def show_config():
    """Show current configuration."""
    settings = get_settings()

    table = Table(title="Matriz Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for field_name in type(settings).model_fields:
        value = getattr(settings, field_name)
        # Hide sensitive values
        if isinstance(value, SecretStr) or any(
            marker in field_name.lower() for marker in ("key", "secret", "token")
        ):
            value = "********" if value else None
        table.add_row(field_name, str(value))

    console.print(table)


@app.command("generate-key")
def generate_key(
    prefix: str = typer.Option("mtz_", "--prefix", help="Key prefix"),
):
    """Generate a random API key for MATRIZ_SERVICE_ROLE_KEY or MATRIZ_ANON_KEY."""
    console.print(f"[bold cyan]{generate_api_key(prefix)}[/bold cyan]")


@app.command()
def dispatch(
    topic: str = typer.Argument(..., help="Event topic"),
    payload: str = typer.Argument(..., help="Event payload as JSON"),
):
    """Dispatch an event to every matching subscription."""
    from matriz.db.session import get_async_session_factory
    from matriz.webhook import (
        InvalidDispatchEvent,
        SubscriptionLookupError,
        WebhookDispatcher,
        load_payload,
        validate_event,
    )

    try:
        data = load_payload(payload)
    except ValueError as e:
        console.print(f"[red]Invalid JSON payload: {e}[/red]")
        raise typer.Exit(1) from e

    try:
        validate_event(topic, data)
    except InvalidDispatchEvent as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    settings = get_settings()
    configure_logging(settings)

    async def run():
        dispatcher = WebhookDispatcher(get_async_session_factory(), settings=settings)
        return await dispatcher.dispatch(topic, data)

    try:
        summary = run_db(run)
    except SubscriptionLookupError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    console.print(summary.message)
    if not summary.results:
        return

    table = Table(title=f"Deliveries for {topic}")
    table.add_column("Subscription", style="dim")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Status")
    table.add_column("Time (ms)", justify="right")
    for result in summary.results:
        status = str(result.status_code) if result.error is None else result.error
        table.add_row(
            str(result.subscription_id)[:8],
            result.endpoint_url,
            f"[green]{status}[/green]" if result.success else f"[red]{status}[/red]",
            str(result.duration_ms),
        )
    console.print(table)


# Subscription commands


def _parse_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        console.print(f"[red]Invalid subscription ID '{value}'[/red]")
        raise typer.Exit(1) from e


@subscriptions_app.command("list")
def subscriptions_list(
    topic: str | None = typer.Option(None, "--topic", "-t", help="Filter by topic"),
):
    """List webhook subscriptions."""
    from sqlalchemy import select

    from matriz.db.models import WebhookSubscription
    from matriz.db.session import async_session

    async def load():
        async with async_session() as session:
            stmt = select(WebhookSubscription).order_by(WebhookSubscription.created_at.desc())
            if topic:
                stmt = stmt.where(WebhookSubscription.topic == topic)
            result = await session.execute(stmt)
            return result.scalars().all()

    subscriptions = run_db(load)

    table = Table(title="Webhook Subscriptions")
    table.add_column("ID", style="dim")
    table.add_column("Topic", style="cyan")
    table.add_column("Endpoint")
    table.add_column("Signed")
    table.add_column("Enabled")

    for sub in subscriptions:
        table.add_row(
            str(sub.id),
            sub.topic,
            sub.endpoint_url,
            "✓" if sub.secret else "✗",
            "✓" if sub.enabled else "✗",
        )

    console.print(table)


@subscriptions_app.command("add")
def subscriptions_add(
    topic: str = typer.Argument(..., help="Topic to subscribe to ('generic' for all)"),
    endpoint_url: str = typer.Argument(..., help="Endpoint URL"),
    secret: str | None = typer.Option(None, "--secret", "-s", help="Signing secret"),
    disabled: bool = typer.Option(False, "--disabled", help="Create disabled"),
):
    """Register a webhook subscription."""
    from matriz.db.models import WebhookSubscription
    from matriz.db.session import async_session

    if not endpoint_url.startswith(("http://", "https://")):
        console.print(f"[red]Endpoint must be an http(s) URL: {endpoint_url}[/red]")
        raise typer.Exit(1)

    async def create():
        async with async_session() as session:
            sub = WebhookSubscription(
                topic=topic,
                endpoint_url=endpoint_url,
                secret=secret or None,
                enabled=not disabled,
            )
            session.add(sub)
            await session.commit()
            await session.refresh(sub)
            return sub.id

    sub_id = run_db(create)
    console.print(f"[green]Created subscription {sub_id} for '{topic}'[/green]")


@subscriptions_app.command("remove")
def subscriptions_remove(
    subscription_id: str = typer.Argument(..., help="Subscription ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete a webhook subscription."""
    from matriz.db.models import WebhookSubscription
    from matriz.db.session import async_session

    sub_id = _parse_id(subscription_id)
    if not force and not typer.confirm(f"Delete subscription {sub_id}?"):
        raise typer.Abort()

    async def delete():
        async with async_session() as session:
            sub = await session.get(WebhookSubscription, sub_id)
            if sub is None:
                return False
            await session.delete(sub)
            await session.commit()
            return True

    if not run_db(delete):
        console.print(f"[red]Subscription {sub_id} not found[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted subscription {sub_id}[/green]")


@subscriptions_app.command("toggle")
def subscriptions_toggle(
    subscription_id: str = typer.Argument(..., help="Subscription ID"),
):
    """Enable a disabled subscription or disable an enabled one."""
    from matriz.db.models import WebhookSubscription
    from matriz.db.session import async_session

    sub_id = _parse_id(subscription_id)

    async def toggle():
        async with async_session() as session:
            sub = await session.get(WebhookSubscription, sub_id)
            if sub is None:
                return None
            sub.enabled = not sub.enabled
            await session.commit()
            return sub.enabled

    enabled = run_db(toggle)
    if enabled is None:
        console.print(f"[red]Subscription {sub_id} not found[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Subscription {sub_id} {'enabled' if enabled else 'disabled'}[/green]")


@app.command()
def cleanup(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be deleted without actually deleting"
    ),
    retention_days: int | None = typer.Option(
        None, "--retention-days", min=1, help="Override the retention period in days"
    ),
):
    """Delete delivery log records older than the retention period."""
    from matriz.cleanup import DeliveryLogCleanupService
    from matriz.db.session import get_async_session_factory

    settings = get_settings()

    async def run():
        service = DeliveryLogCleanupService(settings, get_async_session_factory())
        return await service.cleanup(dry_run=dry_run, retention_days=retention_days)

    result = run_db(run)
    cutoff_str = result.cutoff_date.strftime("%Y-%m-%d %H:%M:%S UTC")

    if dry_run:
        console.print(
            f"[yellow]Would delete {result.deleted_count} delivery log records "
            f"older than {cutoff_str}[/yellow]"
        )
    else:
        console.print(
            f"[green]Deleted {result.deleted_count} delivery log records "
            f"older than {cutoff_str}[/green]"
        )
        if result.has_more:
            console.print("[yellow]Per-run limit reached, run again to continue[/yellow]")


# Database commands


@db_app.command("upgrade")
def db_upgrade(
    revision: str = typer.Argument("head", help="Revision to upgrade to"),
):
    """Upgrade database to a revision."""
    _run_alembic("upgrade", revision)


@db_app.command("downgrade")
def db_downgrade(
    revision: str = typer.Argument(..., help="Revision to downgrade to"),
):
    """Downgrade database to a revision."""
    _run_alembic("downgrade", revision)


@db_app.command("current")
def db_current():
    """Show current database revision."""
    _run_alembic("current")


@db_app.command("history")
def db_history():
    """Show revision history."""
    _run_alembic("history")


def _run_alembic(*args):
    """Run an alembic command against the project's alembic.ini."""
    project_dir = Path(__file__).resolve().parents[2]
    alembic_ini = project_dir / "alembic.ini"

    if not alembic_ini.exists():
        console.print(f"[red]alembic.ini not found at {alembic_ini}[/red]")
        raise typer.Exit(1)

    cmd = ["alembic", "-c", str(alembic_ini), *args]
    result = subprocess.run(cmd, cwd=project_dir)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)


if __name__ == "__main__":
    app()
