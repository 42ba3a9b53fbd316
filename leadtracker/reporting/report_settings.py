"""Report/notification settings: load, sanitize, save (single row, id=1)."""

import re
from urllib.parse import urlsplit

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadtracker.config import get_settings
from leadtracker.models.tables import ReportSettings

import structlog

logger = structlog.get_logger()

SETTINGS_ROW_ID = 1
EMAIL_RE = re.compile(r"^[^@\s,;<>]+@[^@\s,;<>]+\.[^@\s,;<>]+$")


class ReportSettingsData(BaseModel):
    enabled: bool = False
    email: str = ""
    logo_url: str = ""
    instant_enabled: bool = False
    instant_email: str = ""


def parse_recipients(raw: str | None) -> list[str]:
    """Comma-separated addresses → valid ones only, trimmed, in order."""
    if not raw:
        return []
    return [addr for addr in (part.strip() for part in raw.split(",")) if EMAIL_RE.match(addr)]


def clean_logo_url(raw: str | None) -> str:
    if not raw:
        return ""
    raw = raw.strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return ""
    return raw if parts.scheme in ("http", "https") and parts.netloc else ""


def sanitize(data: ReportSettingsData) -> ReportSettingsData:
    return ReportSettingsData(
        enabled=data.enabled,
        email=", ".join(parse_recipients(data.email)),
        logo_url=clean_logo_url(data.logo_url),
        instant_enabled=data.instant_enabled,
        instant_email=", ".join(parse_recipients(data.instant_email)),
    )


def default_settings() -> ReportSettingsData:
    admin_email = get_settings().admin_email
    return ReportSettingsData(email=admin_email, instant_email=admin_email)


async def load_report_settings(db: AsyncSession) -> ReportSettingsData:
    result = await db.execute(select(ReportSettings).where(ReportSettings.id == SETTINGS_ROW_ID))
    row = result.scalar_one_or_none()
    if row is None:
        return default_settings()
    return ReportSettingsData(
        enabled=row.enabled,
        email=row.email,
        logo_url=row.logo_url,
        instant_enabled=row.instant_enabled,
        instant_email=row.instant_email,
    )


async def save_report_settings(db: AsyncSession, data: ReportSettingsData) -> ReportSettingsData:
    clean = sanitize(data)

    result = await db.execute(select(ReportSettings).where(ReportSettings.id == SETTINGS_ROW_ID))
    row = result.scalar_one_or_none()
    if row is None:
        row = ReportSettings(id=SETTINGS_ROW_ID)
        db.add(row)

    row.enabled = clean.enabled
    row.email = clean.email
    row.logo_url = clean.logo_url
    row.instant_enabled = clean.instant_enabled
    row.instant_email = clean.instant_email
    await db.commit()

    logger.info(
        "report_settings_saved",
        monthly_enabled=clean.enabled,
        monthly_recipients=len(parse_recipients(clean.email)),
        instant_enabled=clean.instant_enabled,
        instant_recipients=len(parse_recipients(clean.instant_email)),
    )
    return clean
