"""Tests for reporting windows, digest aggregation, email rendering and sending."""

import asyncio
import datetime
import smtplib
from unittest.mock import patch

import pytest

from leadtracker.config import Settings
from leadtracker.models.tables import LeadEvent
from leadtracker.reporting.digest import MonthlyDigest, EventTypeStat, TrendPoint, build_monthly_digest
from leadtracker.reporting.emails import (
    humanize_event_type,
    render_instant_notification,
    render_monthly_report,
)
from leadtracker.reporting.mailer import Mailer, html_to_text
from leadtracker.reporting.notifications import sample_lead, send_instant_notification, send_monthly_report
from leadtracker.reporting.periods import (
    TEST_REPORT_LABEL,
    coerce_period,
    dashboard_windows,
    monthly_report_period,
    percent_change,
    round_half_up,
    shift_months,
    trend_months,
)
from leadtracker.reporting.report_settings import (
    ReportSettingsData,
    load_report_settings,
    parse_recipients,
    sanitize,
    save_report_settings,
)

dt = datetime.datetime


class FakeMailer:
    def __init__(self, accept=True):
        self.accept = accept
        self.sent = []

    async def send(self, recipients, subject, html):
        self.sent.append((recipients, subject, html))
        return self.accept


def _event(when, event_type="phone_click", source="google", submitting="/contact/", **kw):
    return LeadEvent(
        event_time=when,
        event_type=event_type,
        event_label="5551234567",
        utm_source=source,
        submitting_url=submitting,
        page_location=f"https://site.com{submitting}",
        **kw,
    )


class TestPeriods:
    def test_dashboard_windows(self):
        current, previous = dashboard_windows(7, dt(2026, 3, 10, 15, 30))
        assert current.start == dt(2026, 3, 4)
        assert current.end == dt(2026, 3, 10, 23, 59, 59)
        assert previous.end == dt(2026, 3, 3, 23, 59, 59)
        assert previous.start == dt(2026, 2, 25)

    def test_single_day_window(self):
        current, previous = dashboard_windows(1, dt(2026, 3, 10, 9))
        assert current.start == dt(2026, 3, 10)
        assert previous.start == dt(2026, 3, 9)

    @pytest.mark.parametrize("raw,expected", [("7", 7), (90, 90), ("14", 30), (None, 30), ("abc", 30)])
    def test_coerce_period(self, raw, expected):
        assert coerce_period(raw) == expected

    @pytest.mark.parametrize("now", [dt(2026, 3, 1, 8), dt(2026, 3, 31, 23)])
    def test_monthly_is_previous_calendar_month(self, now):
        period = monthly_report_period(now)
        assert period.current.start == dt(2026, 2, 1)
        assert period.current.end == dt(2026, 2, 28, 23, 59, 59)
        assert period.previous.start == dt(2026, 1, 1)
        assert period.previous.end == dt(2026, 1, 31, 23, 59, 59)
        assert period.label == "February 2026"

    def test_monthly_across_year_boundary(self):
        period = monthly_report_period(dt(2026, 1, 1, 3))
        assert period.current.start == dt(2025, 12, 1)
        assert period.previous.start == dt(2025, 11, 1)
        assert period.label == "December 2025"

    def test_test_mode_is_last_30_days(self):
        period = monthly_report_period(dt(2026, 3, 31, 12), is_test=True)
        assert period.label == TEST_REPORT_LABEL
        assert period.current.start == dt(2026, 3, 2)
        assert period.current.end == dt(2026, 3, 31, 12)
        assert period.previous.start == dt(2026, 2, 2)
        assert period.previous.end == dt(2026, 2, 28, 12)

    def test_shift_months_clamps_day(self):
        assert shift_months(dt(2026, 3, 31), -1) == dt(2026, 2, 28)
        assert shift_months(dt(2024, 3, 31), -1) == dt(2024, 2, 29)
        assert shift_months(dt(2026, 1, 15), -13) == dt(2024, 12, 15)

    @pytest.mark.parametrize("current,previous,expected", [
        (10, 5, 100.0),
        (5, 10, -50.0),
        (3, 0, 100.0),
        (0, 0, 0.0),
        (0, 4, -100.0),
    ])
    def test_percent_change(self, current, previous, expected):
        assert percent_change(current, previous) == expected

    @pytest.mark.parametrize("value,expected", [(12.5, 13), (-12.5, -13), (2.4, 2), (-2.6, -3), (100.0, 100), (0.0, 0)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_trend_months_oldest_first(self):
        assert trend_months(dt(2026, 2, 15), 3) == [(2025, 12), (2026, 1), (2026, 2)]
        assert len(trend_months(dt(2026, 2, 15))) == 12


class TestDigest:
    def test_monthly_digest(self, memory_db):
        period = monthly_report_period(dt(2026, 3, 1, 8))

        async def run():
            async with memory_db() as db:
                db.add_all([
                    _event(dt(2026, 2, 3, 10), "phone_click", "google", "/contact/"),
                    _event(dt(2026, 2, 9, 11), "phone_click", "google", "/contact/"),
                    _event(dt(2026, 2, 14, 12), "sms_click", "facebook", "/services/"),
                    _event(dt(2026, 2, 28, 23, 59, 59), "email_click", "", "/contact/"),
                    _event(dt(2026, 1, 20, 9), "phone_click", "bing", "/"),
                    _event(dt(2025, 11, 5, 9), "sms_click", "google", "/old/"),
                    _event(dt(2026, 3, 1, 0, 0, 1), "phone_click", "google", "/future/"),
                ])
                await db.commit()
                return await build_monthly_digest(db, period)

        digest = asyncio.run(run())

        stats = {s.event_type: (s.current, s.previous) for s in digest.stats}
        assert stats == {"email_click": (1, 0), "phone_click": (2, 1), "sms_click": (1, 0)}
        assert digest.total == 4
        assert digest.previous_total == 1

        assert [(s.source, s.total) for s in digest.top_sources] == [("google", 2), ("facebook", 1)]
        assert digest.top_pages[0].submitting_url == "/contact/"
        assert digest.top_pages[0].total == 3
        assert digest.top_pages[0].page_location == "https://site.com/contact/"

        assert len(digest.trend) == 12
        assert digest.trend[-1] == TrendPoint("Feb '26", 4)
        assert digest.trend[-2] == TrendPoint("Jan '26", 1)
        assert digest.trend[-4] == TrendPoint("Nov '25", 1)
        assert digest.show_trend is True
        assert digest.trend_max == 4

    def test_empty_period(self, memory_db):
        async def run():
            async with memory_db() as db:
                return await build_monthly_digest(db, monthly_report_period(dt(2026, 3, 1)))

        digest = asyncio.run(run())
        assert digest.stats == []
        assert digest.total == 0
        assert digest.show_trend is False


class TestReportSettings:
    def test_parse_recipients(self):
        assert parse_recipients(" a@x.com, nope ,b@y.org,, ") == ["a@x.com", "b@y.org"]
        assert parse_recipients(None) == []

    def test_sanitize(self):
        clean = sanitize(ReportSettingsData(
            enabled=True,
            email="a@x.com, not-an-email",
            logo_url="javascript:alert(1)",
            instant_email="c@z.net",
        ))
        assert clean.email == "a@x.com"
        assert clean.logo_url == ""
        assert clean.instant_email == "c@z.net"

    def test_save_then_load(self, memory_db):
        async def run():
            async with memory_db() as db:
                defaults = await load_report_settings(db)
                await save_report_settings(db, ReportSettingsData(
                    enabled=True,
                    email="owner@site.com",
                    logo_url="https://site.com/logo.png",
                    instant_enabled=True,
                    instant_email="sales@site.com",
                ))
                await save_report_settings(db, ReportSettingsData(enabled=False, email="owner@site.com"))
                return defaults, await load_report_settings(db)

        defaults, loaded = asyncio.run(run())
        assert defaults.enabled is False
        assert loaded.enabled is False
        assert loaded.email == "owner@site.com"
        assert loaded.instant_enabled is False
        assert loaded.logo_url == ""


class TestEmails:
    def test_humanize(self):
        assert humanize_event_type("phone_click") == "Phone Click"
        assert humanize_event_type("sms_click") == "Sms Click"

    def test_instant_notification(self):
        lead = {**sample_lead(), "utm_term": "", "event_label": "<b>555</b>"}
        subject, html = render_instant_notification(lead, "Example Plumbing")

        assert subject == "New Lead on Example Plumbing: Phone Click"
        assert "UTM Campaign:" in html
        assert "UTM Term:" not in html
        assert "&lt;b&gt;555&lt;/b&gt;" in html
        assert "https://shop.example.com/test-page/" in html

    def _digest(self, trend=None):
        return MonthlyDigest(
            label="February 2026",
            stats=[EventTypeStat("phone_click", 4, 2), EventTypeStat("sms_click", 1, 2), EventTypeStat("email_click", 1, 1)],
            trend=trend or [],
        )

    def test_monthly_report(self):
        subject, html = render_monthly_report(self._digest(), "Example Plumbing", "https://site.com/logo.png")

        assert subject == "Your Monthly Lead Report for February 2026 from Example Plumbing"
        assert '<img src="https://site.com/logo.png"' in html
        assert "<strong>6</strong> leads" in html
        assert "(+100% vs. last month)" in html
        assert "(-50% vs. last month)" in html
        assert html.count("vs. last month") == 2
        assert "Great work!" in html
        assert "Performance Over the Last 12 Months" not in html

    def test_trend_most_recent_first(self):
        trend = [TrendPoint("Jan '26", 3), TrendPoint("Feb '26", 6)]
        _, html = render_monthly_report(self._digest(trend), "Example Plumbing")

        assert "<img" not in html
        assert html.index("Feb &#x27;26") < html.index("Jan &#x27;26")
        assert "width: 50%" in html

    def test_half_percent_rounds_away_from_zero(self):
        digest = MonthlyDigest(label="x", stats=[EventTypeStat("phone_click", 9, 8), EventTypeStat("sms_click", 7, 8)])
        _, html = render_monthly_report(digest, "Site")
        assert "(+13% vs. last month)" in html
        assert "(-13% vs. last month)" in html

    def test_declining_closing_line(self):
        digest = MonthlyDigest(label="x", stats=[EventTypeStat("phone_click", 1, 5)])
        _, html = render_monthly_report(digest, "Site")
        assert "improving these numbers" in html


class TestSending:
    def test_instant_disabled(self):
        mailer = FakeMailer()
        settings = ReportSettingsData(instant_enabled=False, instant_email="a@x.com")
        assert asyncio.run(send_instant_notification(sample_lead(), settings, mailer)) is False
        assert mailer.sent == []

    def test_instant_without_valid_recipients(self):
        mailer = FakeMailer()
        settings = ReportSettingsData(instant_enabled=True, instant_email="nobody")
        assert asyncio.run(send_instant_notification(sample_lead(), settings, mailer)) is False

    def test_instant_sent(self):
        mailer = FakeMailer()
        settings = ReportSettingsData(instant_enabled=True, instant_email="a@x.com, b@y.org")
        assert asyncio.run(send_instant_notification(sample_lead(), settings, mailer)) is True
        recipients, subject, _ = mailer.sent[0]
        assert recipients == ["a@x.com", "b@y.org"]
        assert subject.startswith("New Lead on Example Plumbing")

    def test_monthly_disabled_unless_test(self, memory_db):
        settings = ReportSettingsData(enabled=False, email="owner@site.com")
        mailer = FakeMailer()

        async def run():
            async with memory_db() as db:
                regular = await send_monthly_report(db, settings, mailer=mailer)
                test = await send_monthly_report(db, settings, is_test=True, now=dt(2026, 3, 5), mailer=mailer)
                return regular, test

        assert asyncio.run(run()) == (False, True)
        assert len(mailer.sent) == 1
        assert TEST_REPORT_LABEL in mailer.sent[0][1]


class TestMailer:
    def test_unconfigured_mailer_declines(self):
        mailer = Mailer(Settings(smtp_host=""))
        assert asyncio.run(mailer.send(["a@x.com"], "s", "<p>x</p>")) is False

    def test_message_has_text_and_html(self):
        msg = Mailer(Settings(smtp_host="smtp.test")).build_message(["a@x.com"], "Hello", "<p>Hi <b>there</b></p>")
        assert msg["Subject"] == "Hello"
        assert msg.get_body(preferencelist=("plain",)).get_content().strip() == "Hi there"
        assert "<b>there</b>" in msg.get_body(preferencelist=("html",)).get_content()

    def test_smtp_failure_reported_not_raised(self):
        mailer = Mailer(Settings(smtp_host="smtp.test"))
        with patch("leadtracker.reporting.mailer.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
            assert asyncio.run(mailer.send(["a@x.com"], "s", "<p>x</p>")) is False

    def test_html_to_text(self):
        assert html_to_text("<h2>Title</h2>\n\n\n<p>Body</p>") == "Title\n\nBody"
