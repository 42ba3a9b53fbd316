"""
Tracked Event: the packet sent for one contact click.

Wire format (form-encoded, camelCase where the record endpoint expects it):
  action, nonce, eventType, eventLabel, utm_source, utm_medium, utm_campaign,
  utm_term, ad_id, entryUrl, submittingUrl, deviceType, trafficType, pageLocation
"""

from dataclasses import dataclass, fields
from enum import Enum

RECORD_ACTION = "lt_record_event"


class EventType(str, Enum):
    PHONE_CLICK = "phone_click"
    SMS_CLICK = "sms_click"
    EMAIL_CLICK = "email_click"


# dataclass field → wire field
WIRE_FIELDS: dict[str, str] = {
    "event_type": "eventType",
    "event_label": "eventLabel",
    "utm_source": "utm_source",
    "utm_medium": "utm_medium",
    "utm_campaign": "utm_campaign",
    "utm_term": "utm_term",
    "ad_id": "ad_id",
    "entry_url": "entryUrl",
    "submitting_url": "submittingUrl",
    "device_type": "deviceType",
    "traffic_type": "trafficType",
    "page_location": "pageLocation",
}


@dataclass(frozen=True)
class TrackedEvent:
    event_type: str
    event_label: str
    utm_source: str
    utm_medium: str
    utm_campaign: str
    utm_term: str
    ad_id: str
    entry_url: str
    submitting_url: str
    device_type: str
    traffic_type: str
    page_location: str

    def to_payload(self) -> dict[str, str]:
        """Event fields keyed by wire name."""
        payload = {}
        for f in fields(self):
            value = getattr(self, f.name)
            payload[WIRE_FIELDS[f.name]] = value.value if isinstance(value, Enum) else value
        return payload

    def to_form(self, nonce: str, action: str = RECORD_ACTION) -> dict[str, str]:
        return {"action": action, "nonce": nonce, **self.to_payload()}
