"""StoreLink CLI: server and housekeeping commands.

Usage:
    storelink serve               Run the API with uvicorn
    storelink db init             Create the database tables
    storelink session issue ...   Issue a session and print its token
    storelink session revoke TOK  Revoke a session
    storelink session purge       Delete expired sessions
    storelink webhooks purge      Delete old webhook receipts
    storelink version             Show version
"""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from storelink import __version__
from storelink.config import load_settings, validate_settings
from storelink.db.connection import Database
from storelink.errors import ConfigError
from storelink.services.session_authenticator import SessionAuthenticator
from storelink.services.webhook_dispatcher import (
    DEFAULT_RECEIPT_RETENTION_DAYS,
    purge_webhook_receipts,
)

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="storelink",
    help="StoreLink seller store connector",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management")
session_app = typer.Typer(help="Manage seller/admin sessions")
webhooks_app = typer.Typer(help="Webhook receipt housekeeping")

app.add_typer(db_app, name="db")
app.add_typer(session_app, name="session")
app.add_typer(webhooks_app, name="webhooks")

console = Console()


def _open_database() -> Database:
    settings = load_settings()
    database = Database(settings.database_url)
    database.create_all()
    return database


def _authenticator(db) -> SessionAuthenticator:
    settings = load_settings()
    return SessionAuthenticator(
        db,
        ttl_seconds=settings.session_ttl_seconds,
        sliding=settings.session_sliding,
    )


@app.command()
def version():
    """Show StoreLink version."""
    console.print(f"[bold]StoreLink[/bold] v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    log_level: str = typer.Option("info", "--log-level", help="uvicorn log level"),
):
    """Run the StoreLink API (single worker)."""
    import uvicorn

    try:
        validate_settings(load_settings())
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold]Starting StoreLink API on {host}:{port}[/bold]")
    uvicorn.run(
        "storelink.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        workers=1,
        log_level=log_level,
        lifespan="on",
    )


@db_app.command("init")
def db_init_cmd():
    """Create all tables (existing tables are left untouched)."""
    database = _open_database()
    database.dispose()
    console.print(f"[green]Database ready:[/green] {database.url}")


@session_app.command("issue")
def session_issue_cmd(
    username: str = typer.Argument(help="Username to bind the session to"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="User id (defaults to username)"),
    user_type: str = typer.Option("seller", "--user-type", help="seller or admin"),
):
    """Issue a session and print its token (shown only once)."""
    database = _open_database()
    try:
        with database.session_scope() as db:
            issued = _authenticator(db).issue(user_id or username, username, user_type)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        database.dispose()

    table = Table(title="Session issued", show_header=False)
    table.add_row("username", issued.user.username)
    table.add_row("user_type", issued.user.user_type)
    table.add_row("expires_at", issued.expires_at)
    table.add_row("token", issued.token)
    console.print(table)


@session_app.command("revoke")
def session_revoke_cmd(
    token: str = typer.Argument(help="Session token to revoke"),
):
    """Revoke a session. Succeeds even if the session is already gone."""
    database = _open_database()
    try:
        with database.session_scope() as db:
            removed = _authenticator(db).invalidate(token)
    finally:
        database.dispose()

    if removed:
        console.print("[green]Session revoked.[/green]")
    else:
        console.print("[yellow]No matching session (already revoked or expired).[/yellow]")


@session_app.command("purge")
def session_purge_cmd():
    """Delete every expired session."""
    database = _open_database()
    try:
        with database.session_scope() as db:
            count = _authenticator(db).purge_expired()
    finally:
        database.dispose()
    console.print(f"Purged [bold]{count}[/bold] expired session(s).")


@webhooks_app.command("purge")
def webhooks_purge_cmd(
    older_than_days: int = typer.Option(
        DEFAULT_RECEIPT_RETENTION_DAYS,
        "--older-than-days",
        "--older-than",
        min=0,
        help="Delete receipts received more than this many days ago",
    ),
):
    """Delete old webhook de-duplication receipts."""
    database = _open_database()
    try:
        with database.session_scope() as db:
            count = purge_webhook_receipts(db, older_than_days)
    finally:
        database.dispose()
    console.print(
        f"Purged [bold]{count}[/bold] webhook receipt(s) older than {older_than_days} day(s)."
    )


def main():
    """Entry point for the storelink console script."""
    app()


if __name__ == "__main__":
    main()
