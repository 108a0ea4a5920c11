# subtrack/cli.py
import logging

import click
from flask import Flask

from .extensions import db
from .utils.dates import parse_ymd

logger = logging.getLogger(__name__)


def _as_of(value):
    if value is None:
        return None
    d = parse_ymd(value)
    if not d:
        raise click.BadParameter("expected YYYY-MM-DD", param_hint="--now")
    return d


def register_commands(app: Flask):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("backfill")
    @click.option("--now", "now", default=None, help="Backfill up to this date (YYYY-MM-DD), default today.")
    def backfill(now):
        """Create PAID payment records for every elapsed billing cycle."""
        from .services.backfill import backfill_all

        as_of = _as_of(now)
        try:
            report = backfill_all(now=as_of)
        except Exception:
            logger.exception("Backfill aborted")
            raise SystemExit(1)
        click.echo(f"Backfill complete. Created {report.created} payment records.")

    @app.cli.command("generate-bills")
    @click.option("--now", "now", default=None, help="Treat this date (YYYY-MM-DD) as today.")
    def generate_bills(now):
        """Create PENDING bills for subscriptions that are due."""
        from .services.bills import generate_daily_bills

        count = generate_daily_bills(_as_of(now))
        click.echo(f"Generated {count} bills.")
