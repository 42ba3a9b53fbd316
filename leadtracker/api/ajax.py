"""
Event record endpoint: the target of every tracker dispatch.

POST /v1/ajax  (form-encoded)
  action=lt_record_event, nonce, eventType, eventLabel, utm_*, ad_id,
  entryUrl, submittingUrl, deviceType, trafficType, pageLocation

Security:
  - Nonce must verify (HMAC + expiry), no cookies involved
  - Rate limited per client IP
  - Every field sanitized before insert: text fields lose tags/control chars,
    URL fields keep only http(s) or site-relative values
Response envelope: {"success": bool, "data": message}
The instant notification is sent after the response, as a background task.
"""

import re
from collections.abc import Mapping
from urllib.parse import urlsplit

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadtracker.core.events import RECORD_ACTION
from leadtracker.core.nonce import verify_nonce
from leadtracker.middleware.rate_limit import get_real_ip, rate_limit_ip
from leadtracker.models.database import get_db
from leadtracker.models.tables import LeadEvent, utcnow
from leadtracker.reporting.notifications import send_instant_notification
from leadtracker.reporting.report_settings import load_report_settings

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/v1", tags=["ajax"])

# column → form field
TEXT_FIELDS = {
    "event_type": "eventType",
    "event_label": "eventLabel",
    "traffic_type": "trafficType",
    "device_type": "deviceType",
    "utm_source": "utm_source",
    "utm_medium": "utm_medium",
    "utm_campaign": "utm_campaign",
    "utm_term": "utm_term",
    "ad_id": "ad_id",
}
URL_FIELDS = {
    "entry_url": "entryUrl",
    "submitting_url": "submittingUrl",
    "page_location": "pageLocation",
}
MAX_TEXT_LENGTH = 255

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_SPACE_RE = re.compile(r"\s+")


def clean_text(value: str | None) -> str:
    """Strip tags and control characters, collapse whitespace, cap length."""
    if not value:
        return ""
    value = _TAG_RE.sub("", value)
    value = _CONTROL_RE.sub(" ", value)
    return _SPACE_RE.sub(" ", value).strip()[:MAX_TEXT_LENGTH]


def clean_url(value: str | None) -> str:
    """Keep http(s) URLs and site-relative paths; drop anything else."""
    if not value:
        return ""
    value = _CONTROL_RE.sub("", value).strip().replace(" ", "%20")
    if value.startswith("/") and not value.startswith("//"):
        return value
    try:
        parts = urlsplit(value)
    except ValueError:
        return ""
    if parts.scheme.lower() in ("http", "https") and parts.netloc:
        return value
    return ""


def build_lead_row(form: Mapping) -> dict[str, str]:
    row = {column: clean_text(form.get(field)) for column, field in TEXT_FIELDS.items()}
    row.update({column: clean_url(form.get(field)) for column, field in URL_FIELDS.items()})
    return row


@router.post("/ajax")
async def record_event(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    rate_limit_ip(request)
    form = await request.form()

    if form.get("action") != RECORD_ACTION:
        raise HTTPException(status_code=400, detail="Unknown action.")

    if verify_nonce(form.get("nonce")) is None:
        logger.warning("nonce_rejected", ip=get_real_ip(request))
        raise HTTPException(status_code=403, detail="Nonce verification failed.")

    row = build_lead_row(form)
    db.add(LeadEvent(event_time=utcnow(), **row))
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("lead_event_insert_failed", event_type=row["event_type"], error=str(e))
        return JSONResponse(
            status_code=500,
            content={"success": False, "data": "Failed to save event to the database."},
        )

    logger.info(
        "lead_event_recorded",
        event_type=row["event_type"],
        traffic_type=row["traffic_type"],
        utm_source=row["utm_source"],
        submitting_url=row["submitting_url"],
    )

    # Settings are read now: the request's db session is gone once the task runs.
    report_settings = await load_report_settings(db)
    if report_settings.instant_enabled:
        background_tasks.add_task(send_instant_notification, row, report_settings)

    return {"success": True, "data": "Event recorded."}
