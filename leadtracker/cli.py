"""Command line entry point: monthly report runs (cron) and table setup."""

import asyncio

import click
import structlog

from leadtracker import __version__
from leadtracker.models.database import get_engine, get_session_maker
from leadtracker.models.tables import Base
from leadtracker.reporting.notifications import send_monthly_report
from leadtracker.reporting.report_settings import load_report_settings

logger = structlog.get_logger()


@click.group()
@click.version_option(version=__version__, prog_name="leadtracker")
def cli():
    """Lead Tracker - lead attribution and reporting.

    \b
    Cron (1st of each month):
      leadtracker send-report
    """
    pass


async def _send_report(is_test: bool) -> bool:
    async with get_session_maker()() as db:
        report_settings = await load_report_settings(db)
        return await send_monthly_report(db, report_settings, is_test=is_test)


async def _create_tables() -> None:
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await get_engine().dispose()


@cli.command("send-report")
@click.option("--test", "is_test", is_flag=True, help="Last 30 days, sent even if reports are disabled")
def send_report(is_test: bool):
    """Send the monthly lead report."""
    sent = asyncio.run(_send_report(is_test))
    if sent:
        click.echo("Report sent.")
    else:
        click.echo("Report not sent (disabled, no recipients or mail failure).")


@cli.command("init-db")
def init_db():
    """Create tables directly (use alembic for managed deployments)."""
    asyncio.run(_create_tables())
    logger.info("tables_created")
    click.echo("Tables created.")


if __name__ == "__main__":
    cli()
