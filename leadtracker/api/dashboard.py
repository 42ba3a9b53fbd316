"""
Dashboard API: admin-key authenticated.

GET  /v1/dashboard/summary            per event type counts, current vs previous period
GET  /v1/dashboard/events             paginated, sortable lead event table
GET  /v1/dashboard/settings           report / notification settings
PUT  /v1/dashboard/settings
POST /v1/dashboard/test-report        monthly digest over the last 30 days, now
POST /v1/dashboard/test-notification  instant notification with a sample lead
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadtracker.middleware.auth import require_admin
from leadtracker.models.database import get_db
from leadtracker.models.tables import LeadEvent, utcnow
from leadtracker.reporting.digest import event_type_stats
from leadtracker.reporting.emails import humanize_event_type
from leadtracker.reporting.notifications import sample_lead, send_instant_notification, send_monthly_report
from leadtracker.reporting.periods import ALLOWED_PERIODS, coerce_period, dashboard_windows, round_half_up
from leadtracker.reporting.report_settings import (
    ReportSettingsData,
    load_report_settings,
    parse_recipients,
    save_report_settings,
)

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"], dependencies=[Depends(require_admin)])

PER_PAGE = 25
SORTABLE_COLUMNS = {
    "event_time": LeadEvent.event_time,
    "event_type": LeadEvent.event_type,
    "traffic_type": LeadEvent.traffic_type,
    "utm_source": LeadEvent.utm_source,
    "utm_medium": LeadEvent.utm_medium,
    "utm_campaign": LeadEvent.utm_campaign,
}


@router.get("/summary")
async def dashboard_summary(
    period: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Counts per event type for the period, with pct change vs the previous period."""
    days = coerce_period(period)
    current, previous = dashboard_windows(days, utcnow())
    stats = await event_type_stats(db, current, previous)

    return {
        "period_days": days,
        "current": {"start": current.start.isoformat(), "end": current.end.isoformat()},
        "previous": {"start": previous.start.isoformat(), "end": previous.end.isoformat()},
        "event_types": [
            {
                "event_type": s.event_type,
                "label": humanize_event_type(s.event_type),
                "current": s.current,
                "previous": s.previous,
                "pct_change": round_half_up(s.change),
            }
            for s in stats
        ],
    }


@router.get("/events")
async def dashboard_events(
    period: str | None = None,
    orderby: str = "event_time",
    order: str = "desc",
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """25 per page. Unknown sort column → event_time; unknown direction → desc."""
    query = select(LeadEvent)
    count_query = select(func.count(LeadEvent.id))

    # No period (or an unknown one) → all time.
    days = _as_int(period)
    if days:
        current, _ = dashboard_windows(days, utcnow())
        window = LeadEvent.event_time.between(current.start, current.end)
        query = query.where(window)
        count_query = count_query.where(window)

    column = SORTABLE_COLUMNS.get(orderby, LeadEvent.event_time)
    direction = order.lower() if order.lower() in ("asc", "desc") else "desc"
    query = query.order_by(column.asc() if direction == "asc" else column.desc(), LeadEvent.id.desc())

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(query.offset((page - 1) * PER_PAGE).limit(PER_PAGE))

    return {
        "total": total,
        "page": page,
        "per_page": PER_PAGE,
        "events": [
            {
                "id": e.id,
                "event_time": e.event_time.strftime("%Y-%m-%d %H:%M:%S") if e.event_time else None,
                "event_type": e.event_type,
                "event_label": e.event_label,
                "traffic_type": e.traffic_type,
                "device_type": e.device_type,
                "utm_source": e.utm_source,
                "utm_medium": e.utm_medium,
                "utm_campaign": e.utm_campaign,
                "utm_term": e.utm_term,
                "ad_id": e.ad_id,
                "entry_url": e.entry_url,
                "submitting_url": e.submitting_url,
                "page_location": e.page_location,
            }
            for e in result.scalars().all()
        ],
    }


def _as_int(value: str | None) -> int | None:
    try:
        period = int(value)
    except (TypeError, ValueError):
        return None
    return period if period in ALLOWED_PERIODS else None


@router.get("/settings")
async def get_report_settings(db: AsyncSession = Depends(get_db)):
    return await load_report_settings(db)


@router.put("/settings")
async def update_report_settings(body: ReportSettingsData, db: AsyncSession = Depends(get_db)):
    return await save_report_settings(db, body)


@router.post("/test-report")
async def test_report(db: AsyncSession = Depends(get_db)):
    report_settings = await load_report_settings(db)
    recipients = parse_recipients(report_settings.email)
    if not recipients:
        return {"sent": False, "reason": "no_recipients"}

    sent = await send_monthly_report(db, report_settings, is_test=True)
    return {"sent": sent, "recipients": recipients}


@router.post("/test-notification")
async def test_notification(db: AsyncSession = Depends(get_db)):
    report_settings = await load_report_settings(db)
    recipients = parse_recipients(report_settings.instant_email)
    if not recipients:
        return {"sent": False, "reason": "no_recipients"}
    if not report_settings.instant_enabled:
        return {"sent": False, "reason": "disabled"}

    sent = await send_instant_notification(sample_lead(), report_settings)
    return {"sent": sent, "recipients": recipients}
