"""CLI tools for job engine administration."""

import logging

import click

from jobengine.core.config import settings
from jobengine.db.session import SessionLocal
from jobengine.services import invoice_service


@click.group()
def cli():
    """Job engine CLI tools."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


@cli.command()
@click.option(
    "--terms-days",
    type=int,
    default=None,
    help="Days after approval before an invoice is overdue (default: INVOICE_PAYMENT_TERMS_DAYS)",
)
def mark_overdue(terms_days: int | None):
    """
    Flag approved invoices unpaid past their payment terms as OVERDUE.

    Safe to run repeatedly; already-flagged invoices are skipped.

    Example:
        jobengine mark-overdue --terms-days 45
    """
    db = SessionLocal()
    try:
        flagged = invoice_service.mark_overdue(db, terms_days=terms_days)
        click.echo(f"Flagged {flagged} invoice(s) as overdue")
    finally:
        db.close()


@cli.command()
def create_tables():
    """Create all tables directly (local SQLite development only; use alembic elsewhere)."""
    from jobengine.db.base import Base
    from jobengine.db.session import engine
    import jobengine.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("Tables created")


if __name__ == "__main__":
    cli()
