"""
Instant lead notification + monthly digest sending.

Both return True only if the mail was accepted by the SMTP server.
Disabled settings or no valid recipients → False, nothing sent.
The monthly report in test mode ignores the enabled flag (recipients still required).
"""

import datetime
from collections.abc import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from leadtracker.config import get_settings
from leadtracker.models.tables import utcnow
from leadtracker.reporting.digest import build_monthly_digest
from leadtracker.reporting.emails import render_instant_notification, render_monthly_report
from leadtracker.reporting.mailer import Mailer
from leadtracker.reporting.periods import monthly_report_period
from leadtracker.reporting.report_settings import ReportSettingsData, parse_recipients

import structlog

logger = structlog.get_logger()

# Sample lead used by the dashboard's "send test notification" action.
SAMPLE_LEAD = {
    "event_type": "phone_click",
    "event_label": "555-123-4567 (Test)",
    "traffic_type": "Direct",
    "device_type": "Desktop",
    "utm_source": "google",
    "utm_medium": "cpc",
    "utm_campaign": "spring_sale",
    "utm_term": "test keyword",
}


def sample_lead() -> dict[str, str]:
    return {**SAMPLE_LEAD, "page_location": f"{get_settings().base_url.rstrip('/')}/test-page/"}


async def send_instant_notification(
    lead: Mapping,
    report_settings: ReportSettingsData,
    mailer: Mailer | None = None,
) -> bool:
    if not report_settings.instant_enabled:
        return False

    recipients = parse_recipients(report_settings.instant_email)
    if not recipients:
        return False

    subject, html = render_instant_notification(lead, get_settings().site_name)
    sent = await (mailer or Mailer()).send(recipients, subject, html)
    logger.info("instant_notification", event_type=lead.get("event_type"), sent=sent)
    return sent


async def send_monthly_report(
    db: AsyncSession,
    report_settings: ReportSettingsData,
    is_test: bool = False,
    now: datetime.datetime | None = None,
    mailer: Mailer | None = None,
) -> bool:
    if not is_test and not report_settings.enabled:
        return False

    recipients = parse_recipients(report_settings.email)
    if not recipients:
        return False

    period = monthly_report_period(now or utcnow(), is_test=is_test)
    digest = await build_monthly_digest(db, period)
    subject, html = render_monthly_report(digest, get_settings().site_name, report_settings.logo_url)

    sent = await (mailer or Mailer()).send(recipients, subject, html)
    logger.info("monthly_report", period=period.label, total=digest.total, is_test=is_test, sent=sent)
    return sent
