"""Operator commands for the control-plane database."""

import logging

import typer

from controlplane.db.migrations import run_migrations
from controlplane.db.session import session_scope
from controlplane.services.maintenance import sweep_expired_records
from controlplane.services.sessions import SessionService
from controlplane.services.users import deactivate_user, get_user_by_email

app = typer.Typer(help="Control-plane administration commands.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def migrate() -> None:
    """Apply database migrations up to head."""
    run_migrations()
    typer.echo("Database is up to date.")


@app.command()
def sweep() -> None:
    """Delete expired OAuth states, verifications and sessions."""
    with session_scope() as db:
        counts = sweep_expired_records(db)
    for table, count in counts.items():
        typer.echo(f"{table}: {count} removed")


@app.command("logout-all")
def logout_all(email: str) -> None:
    """Invalidate every active session of a user."""
    with session_scope() as db:
        user = get_user_by_email(db, email)
        if user is None:
            typer.echo(f"Error: User with email {email} not found.")
            raise typer.Exit(code=1)
        count = SessionService().invalidate_all_user_sessions(db, user.id)
    typer.echo(f"Invalidated {count} session(s) for {email}")


@app.command("deactivate-user")
def deactivate(email: str) -> None:
    """Soft-deactivate a user and revoke their sessions."""
    with session_scope() as db:
        user = get_user_by_email(db, email)
        if user is None:
            typer.echo(f"Error: User with email {email} not found.")
            raise typer.Exit(code=1)
        revoked = deactivate_user(db, user)
    typer.echo(f"User {email} deactivated ({revoked} session(s) revoked)")


if __name__ == "__main__":
    app()
