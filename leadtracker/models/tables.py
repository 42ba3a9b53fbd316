"""
Database models.

  - lead_events is append-only: one row per tracked contact click
  - report_settings is a single mutable row (id=1) holding notification settings

Timestamps are stored as naive UTC so period queries compare the same way on
every backend.
"""

import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class LeadEvent(Base):
    """One row per phone / sms / email click, with its attribution snapshot."""
    __tablename__ = "lead_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_time = Column(DateTime, nullable=False, default=utcnow)
    event_type = Column(String(255), nullable=False)
    event_label = Column(String(255), nullable=False)

    # --- Per-view classification ---
    traffic_type = Column(String(50), nullable=False, default="")    # Paid, Social, Referral, Direct
    device_type = Column(String(50), nullable=False, default="")     # Mobile, Desktop

    # --- First-touch attribution ---
    utm_source = Column(String(255), nullable=False, default="")
    utm_medium = Column(String(255), nullable=False, default="")
    utm_campaign = Column(String(255), nullable=False, default="")
    utm_term = Column(String(255), nullable=False, default="")
    ad_id = Column(String(255), nullable=False, default="")          # gclid, msclkid, ...

    # --- Pages ---
    entry_url = Column(Text, nullable=False, default="")             # normalized landing path
    submitting_url = Column(Text, nullable=False, default="")        # normalized path of the click
    page_location = Column(Text, nullable=False, default="")         # full URL of the click

    __table_args__ = (
        Index("ix_lead_events_time_type", "event_time", "event_type"),
    )


class ReportSettings(Base):
    """Monthly report + instant notification settings. Single row, id=1."""
    __tablename__ = "report_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    email = Column(Text, nullable=False, default="")                 # comma-separated recipients
    logo_url = Column(Text, nullable=False, default="")
    instant_enabled = Column(Boolean, nullable=False, default=False)
    instant_email = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
