"""CLI commands for the LMS.

Commands:
- init-db: Create the database schema
- create-user: Register a profile (admins included)
- serve: Run the Web API with uvicorn
- check-expiring: Send subscription expiry reminders
- report: Write a platform report to a file
"""

import csv
import io
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from lms.config import load_app_config
from lms.core import accounts, reports, subscriptions
from lms.core.errors import LMSError
from lms.db import init_db
from lms.utils.log_config import configure_logging

app = typer.Typer(
    name="lms",
    help="Learning management system backend.",
    no_args_is_help=True,
)

console = Console()


def _open_db(db_path: str | None) -> Path:
    path = Path(db_path) if db_path else load_app_config().get_db_path()
    init_db(path)
    return path


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log JSON lines"),
) -> None:
    configure_logging("DEBUG" if verbose else "WARNING", json_output=json_logs)


@app.command(name="init-db")
def init_database(
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create the database and its tables."""
    path = _open_db(db)
    console.print(f"[green]✓ Database ready[/green] [dim]{path}[/dim]")


@app.command(name="create-user")
def create_user(
    email: str = typer.Argument(..., help="Email address"),
    full_name: str = typer.Argument(..., help="Display name"),
    role: str = typer.Option("student", "--role", "-r", help="student, instructor or admin"),
    user_id: str | None = typer.Option(None, "--id", help="Identity provider subject"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Register a user. Admins can only be created here; instructors start approved."""
    _open_db(db)
    try:
        user = accounts.register_user(email, full_name, role=role, user_id=user_id, allow_admin=True)
    except LMSError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ User created[/green]")
    console.print(f"  [dim]id:[/dim]     {user.id}")
    console.print(f"  [dim]role:[/dim]   {user.role}")
    console.print(f"  [dim]status:[/dim] {user.status}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    console.print(f"[cyan]Serving on http://{host}:{port}[/cyan]")
    uvicorn.run("lms.web.api:app", host=host, port=port, reload=reload)


@app.command(name="check-expiring")
def check_expiring(
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Notify owners of subscriptions ending within the reminder window."""
    _open_db(db)
    result = subscriptions.check_expiring_subscriptions()

    console.print(f"Expiring subscriptions: {result.total}")
    console.print(f"  [green]sent:[/green]   {len(result.sent)}")
    if result.failed:
        console.print(f"  [red]failed:[/red] {len(result.failed)}")
        for subscription_id in result.failed:
            console.print(f"    - {subscription_id}")
        raise typer.Exit(code=1)


@app.command()
def report(
    report_type: str = typer.Argument("summary", help="summary, users, courses, books, revenue, activity"),
    date_range: str = typer.Option("last-30-days", "--range", help="last-7-days ... all-time"),
    fmt: str = typer.Option("csv", "--format", "-f", help="csv, excel, json or pdf"),
    output_dir: str | None = typer.Option(None, "--out", "-o", help="Report directory (default from config)"),
    admin_email: str = typer.Option(..., "--admin", help="Email of the requesting admin"),
    db: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Write a platform report to a file."""
    _open_db(db)
    admin = accounts.find_by_email(admin_email)
    if admin is None:
        console.print(f"[red]✗ No user with email {admin_email}[/red]")
        raise typer.Exit(code=1)

    try:
        generated = reports.generate_report(admin, report_type=report_type, date_range=date_range, fmt=fmt)
    except LMSError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    out_dir = Path(output_dir) if output_dir else load_app_config().get_reports_dir()
    out_path = out_dir / generated.filename
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(generated.content, encoding="utf-8")

    if generated.media_type == "text/csv" and report_type in ("summary", "revenue", "activity"):
        table = Table(title=generated.filename)
        rows = list(csv.reader(io.StringIO(generated.content)))
        for column in rows[0]:
            table.add_column(column)
        for row in rows[1:]:
            table.add_row(*row)
        console.print(table)

    console.print(f"[green]✓ Report written[/green] [dim]{out_path}[/dim]")


if __name__ == "__main__":
    app()
