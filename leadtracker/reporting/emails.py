"""HTML email bodies for the instant notification and the monthly digest."""

from collections.abc import Mapping
from html import escape

from leadtracker.reporting.digest import MonthlyDigest
from leadtracker.reporting.periods import round_half_up

EVENT_ICONS = {
    "phone_click": "☎️",
    "email_click": "\U0001f4e9",
    "sms_click": "\U0001f4f1",
}
DEFAULT_ICON = "➡️"

# lead field → row label, in display order
INSTANT_FIELDS = {
    "event_type": "Event Type",
    "event_label": "Event Label",
    "traffic_type": "Traffic Type",
    "device_type": "Device Type",
    "utm_source": "UTM Source",
    "utm_medium": "UTM Medium",
    "utm_campaign": "UTM Campaign",
    "utm_term": "UTM Term",
    "page_location": "Page URL",
}


def humanize_event_type(event_type: str) -> str:
    """phone_click → Phone Click. Only first letters are touched."""
    return " ".join(w[:1].upper() + w[1:] for w in event_type.replace("_", " ").split(" "))


def render_instant_notification(lead: Mapping, site_title: str) -> tuple[str, str]:
    """Returns (subject, html)."""
    event_type = lead.get("event_type")
    subject = f"New Lead on {site_title}: {humanize_event_type(event_type) if event_type else 'Lead'}"

    rows = []
    for key, label in INSTANT_FIELDS.items():
        value = lead.get(key)
        if not value:
            continue
        if key == "event_type":
            value = humanize_event_type(value)
        rows.append(
            '<tr style="border-bottom: 1px solid #eeeeee;">'
            f'<td style="padding: 8px; font-weight: bold;">{escape(label)}:</td>'
            f'<td style="padding: 8px;">{escape(str(value))}</td>'
            "</tr>"
        )

    html = (
        '<h2 style="font-family: sans-serif;">New Lead Notification</h2>'
        f'<p style="font-family: sans-serif;">A new lead event was just triggered on {escape(site_title)}.</p>'
        '<table style="font-family: sans-serif; border-collapse: collapse; width: 100%;">'
        + "".join(rows)
        + "</table>"
    )
    return subject, html


def monthly_report_subject(label: str, site_title: str) -> str:
    return f"Your Monthly Lead Report for {label} from {site_title}"


def _section(title: str, body: str) -> str:
    return f'<tr><td><h2 style="font-size: 20px; margin-bottom: 10px;">{title}</h2>{body}</td></tr>'


def render_monthly_report(digest: MonthlyDigest, site_title: str, logo_url: str = "") -> tuple[str, str]:
    """Returns (subject, html)."""
    parts = []

    if logo_url:
        parts.append(
            '<tr><td align="center" style="padding-bottom: 0;">'
            f'<img src="{escape(logo_url)}" alt="{escape(site_title)} Logo" style="max-width: 150px; margin-bottom: 20px;">'
            "</td></tr>"
        )

    parts.append(
        '<tr><td><h2 style="font-size: 24px; margin: 0; text-align: center;">'
        f"\U0001f389 Your website generated <strong>{digest.total:,}</strong> leads this past month!"
        "</h2></td></tr>"
    )

    intro = (
        f'<p style="font-size: 16px;">Here is a breakdown of the lead events recorded on '
        f"{escape(site_title)} for {escape(digest.label)}:</p>"
    )
    if digest.stats:
        items = []
        for stat in digest.stats:
            icon = EVENT_ICONS.get(stat.event_type, DEFAULT_ICON)
            line = f"{icon} <strong>{escape(humanize_event_type(stat.event_type))}:</strong> {stat.current:,}"
            change = stat.change
            if change != 0:
                color = "#00a32a" if change > 0 else "#d63638"
                sign = "+" if change > 0 else ""
                line += f' <span style="color: {color};">({sign}{round_half_up(change)}% vs. last month)</span>'
            items.append(f'<li style="margin-bottom: 15px;">{line}</li>')
        breakdown = '<ul style="font-size: 16px; list-style-type: none; padding: 0;">' + "".join(items) + "</ul>"
    else:
        breakdown = "<p>No events were recorded during this period.</p>"
    parts.append(f"<tr><td>{intro}{breakdown}</td></tr>")

    if digest.top_sources:
        items = "".join(f"<li>{escape(s.source)} ({s.total:,} leads)</li>" for s in digest.top_sources)
        parts.append(_section(
            "\U0001f51d Top Traffic Sources",
            f'<ul style="font-size: 16px; padding-left: 20px; margin: 0;">{items}</ul>',
        ))

    if digest.top_pages:
        items = "".join(
            f'<li><a href="{escape(p.page_location)}" style="color: #0073aa; text-decoration: none;">'
            f"{escape(p.submitting_url)}</a> ({p.total:,} leads)</li>"
            for p in digest.top_pages
        )
        parts.append(_section(
            "\U0001f4c4 Top Pages Generating Leads",
            f'<ul style="font-size: 16px; padding-left: 20px; margin: 0;">{items}</ul>',
        ))

    if digest.show_trend:
        peak = digest.trend_max
        rows = []
        # Most recent month first, highlighted.
        for i, point in enumerate(reversed(digest.trend)):
            width = max(1, point.total / peak * 100) if peak else 1
            color = "#005a9c" if i == 0 else "#72aee6"
            rows.append(
                "<tr>"
                f'<td style="padding: 4px; width: 60px;">{escape(point.label)}</td>'
                f'<td style="padding: 4px; width: 40px; text-align: right; font-weight: bold;">{point.total:,}</td>'
                f'<td style="padding: 4px;"><div style="width: {width:.0f}%; background-color: {color}; '
                'height: 20px; border-radius: 3px;">&nbsp;</div></td>'
                "</tr>"
            )
        parts.append(_section(
            "\U0001f4ca Performance Over the Last 12 Months",
            '<table style="width: 100%; border-collapse: collapse; font-size: 12px; margin-top: 15px;">'
            + "".join(rows) + "</table>",
        ))

    if digest.total >= digest.previous_total:
        closing = "Great work! Let’s keep building on this momentum."
    else:
        closing = "Let's focus on improving these numbers for next month's report."
    parts.append(
        '<tr><td style="text-align: center; padding-top: 30px; border-top: 1px solid #eeeeee;">'
        f'<p style="font-size: 16px; color: #50575e;">{escape(closing)}</p></td></tr>'
    )

    html = (
        '<table width="100%" border="0" cellpadding="0" cellspacing="0" '
        'style="background-color:#f2f4f6; font-family: sans-serif; padding: 20px 0;"><tr><td align="center">'
        '<table width="600" border="0" cellpadding="20" cellspacing="0" '
        'style="background-color:#ffffff; border-radius: 8px; text-align: left;">'
        + "".join(parts)
        + "</table></td></tr></table>"
    )
    return monthly_report_subject(digest.label, site_title), html
