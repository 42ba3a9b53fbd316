"""
Digest aggregation: period-bounded counts over lead_events.

Only simple counts: by event type (current vs previous), by utm_source, by
submitting_url, and per calendar month for the 12-month trend.
"""

import datetime
from dataclasses import dataclass, field

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadtracker.models.tables import LeadEvent
from leadtracker.reporting.periods import ReportPeriod, Window, percent_change, shift_months, trend_months


@dataclass(frozen=True)
class EventTypeStat:
    event_type: str
    current: int = 0
    previous: int = 0

    @property
    def change(self) -> float:
        return percent_change(self.current, self.previous)


@dataclass(frozen=True)
class SourceCount:
    source: str
    total: int


@dataclass(frozen=True)
class PageCount:
    submitting_url: str
    page_location: str
    total: int


@dataclass(frozen=True)
class TrendPoint:
    label: str
    total: int


@dataclass
class MonthlyDigest:
    label: str
    stats: list[EventTypeStat] = field(default_factory=list)
    top_sources: list[SourceCount] = field(default_factory=list)
    top_pages: list[PageCount] = field(default_factory=list)
    trend: list[TrendPoint] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(s.current for s in self.stats)

    @property
    def previous_total(self) -> int:
        return sum(s.previous for s in self.stats)

    @property
    def show_trend(self) -> bool:
        return sum(1 for p in self.trend if p.total > 0) > 1

    @property
    def trend_max(self) -> int:
        return max((p.total for p in self.trend), default=0)


def _in_window(window: Window):
    return LeadEvent.event_time.between(window.start, window.end)


async def count_by_event_type(db: AsyncSession, window: Window) -> dict[str, int]:
    result = await db.execute(
        select(LeadEvent.event_type, func.count(LeadEvent.id).label("total"))
        .where(_in_window(window))
        .group_by(LeadEvent.event_type)
        .order_by(LeadEvent.event_type)
    )
    return {row.event_type: int(row.total) for row in result.all()}


async def event_type_stats(db: AsyncSession, current: Window, previous: Window) -> list[EventTypeStat]:
    """Every event type seen in either window; current-window types first."""
    cur = await count_by_event_type(db, current)
    prev = await count_by_event_type(db, previous)
    types = list(cur) + [t for t in prev if t not in cur]
    return [EventTypeStat(t, cur.get(t, 0), prev.get(t, 0)) for t in types]


async def top_sources(db: AsyncSession, window: Window, limit: int = 3) -> list[SourceCount]:
    total = func.count(LeadEvent.id).label("total")
    result = await db.execute(
        select(LeadEvent.utm_source, total)
        .where(_in_window(window), LeadEvent.utm_source != "")
        .group_by(LeadEvent.utm_source)
        .order_by(total.desc(), LeadEvent.utm_source)
        .limit(limit)
    )
    return [SourceCount(row.utm_source, int(row.total)) for row in result.all()]


async def top_pages(db: AsyncSession, window: Window, limit: int = 3) -> list[PageCount]:
    total = func.count(LeadEvent.id).label("total")
    result = await db.execute(
        select(
            LeadEvent.submitting_url,
            func.max(LeadEvent.page_location).label("page_location"),
            total,
        )
        .where(_in_window(window))
        .group_by(LeadEvent.submitting_url)
        .order_by(total.desc(), LeadEvent.submitting_url)
        .limit(limit)
    )
    return [PageCount(row.submitting_url, row.page_location or "", int(row.total)) for row in result.all()]


async def monthly_trend(db: AsyncSession, end: datetime.datetime, start: datetime.datetime, months: int = 12) -> list[TrendPoint]:
    year = extract("year", LeadEvent.event_time).label("event_year")
    month = extract("month", LeadEvent.event_time).label("event_month")
    result = await db.execute(
        select(year, month, func.count(LeadEvent.id).label("total"))
        .where(LeadEvent.event_time.between(start, end))
        .group_by(year, month)
    )
    counts = {(int(row.event_year), int(row.event_month)): int(row.total) for row in result.all()}

    points = []
    for y, m in trend_months(end, months):
        label = datetime.date(y, m, 1).strftime("%b '%y")
        points.append(TrendPoint(label, counts.get((y, m), 0)))
    return points


async def build_monthly_digest(db: AsyncSession, period: ReportPeriod) -> MonthlyDigest:
    current = period.current
    return MonthlyDigest(
        label=period.label,
        stats=await event_type_stats(db, current, period.previous),
        top_sources=await top_sources(db, current),
        top_pages=await top_pages(db, current),
        trend=await monthly_trend(db, current.end, shift_months(current.start, -11)),
    )
