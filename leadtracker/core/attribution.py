"""
Attribution Resolver: first-touch attribution for a browser session.

Per page view:
  1. Detect signals on the CURRENT page: ad click ids in the query, social referrer.
  2. First page view of the session only → capture first touch into the store:
       entry_url, utm_source/medium/campaign/term, every ad click id present.
  3. Resolve UTMs: stored value → current query → "".
  4. Resolve ad_id: first non-empty ad key in priority order (query, then store, per key).
  5. Transmitted source/medium: resolved UTM → social/referral fallback from the
     CURRENT referrer → "".
  6. Classify device (UA) and traffic (Paid → Social → Referral → Direct).
     Traffic is recomputed every view, never stored.

Stored values are never overwritten: a second landing with new UTMs in the same
session keeps the first-touch values. Empty stored values do fall through to the
current query (step 3).
"""

import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlsplit

import structlog

from leadtracker.core.events import TrackedEvent
from leadtracker.core.session_store import SessionStore

logger = structlog.get_logger()

# Priority order matters: first present key wins as ad_id.
AD_ID_KEYS = ("gclid", "gbraid", "wbraid", "gclsrc", "gad_source", "msclkid")

TRACKED_KEY = "lt_tracked"
ENTRY_URL_KEY = "entry_url"

SOCIAL_REFERRER = re.compile(r"facebook|instagram|twitter|linkedin|t\.co", re.IGNORECASE)
MOBILE_UA = re.compile(r"Mobi|Android", re.IGNORECASE)
PAID_MEDIUMS = frozenset({"cpc", "paid", "ppc"})

DEVICE_MOBILE = "Mobile"
DEVICE_DESKTOP = "Desktop"

TRAFFIC_PAID = "Paid"
TRAFFIC_SOCIAL = "Social"
TRAFFIC_REFERRAL = "Referral"
TRAFFIC_DIRECT = "Direct"


@dataclass(frozen=True)
class PageView:
    """What the page knows about itself at page-ready."""

    url: str
    referrer: str = ""
    user_agent: str = ""

    @property
    def path(self) -> str:
        try:
            return urlsplit(self.url).path or "/"
        except ValueError:
            return "/"

    @property
    def query(self) -> dict[str, str]:
        try:
            return parse_query(urlsplit(self.url).query)
        except ValueError:
            return {}


@dataclass(frozen=True)
class SessionAttribution:
    """First-touch record as currently held by the session store."""

    source: str = ""
    medium: str = ""
    campaign: str = ""
    term: str = ""
    ad_id: str = ""
    entry_url: str = ""
    is_tracked: bool = False

    @classmethod
    def load(cls, store: SessionStore) -> "SessionAttribution":
        return cls(
            source=store.get("utm_source"),
            medium=store.get("utm_medium"),
            campaign=store.get("utm_campaign"),
            term=store.get("utm_term"),
            ad_id=next((store.get(k) for k in AD_ID_KEYS if store.get(k)), ""),
            entry_url=store.get(ENTRY_URL_KEY),
            is_tracked=bool(store.get(TRACKED_KEY)),
        )


@dataclass(frozen=True)
class PageAttribution:
    """Resolved attribution for one page view. Closed over by every click handler."""

    # Sticky (store first, then current query)
    utm_source: str
    utm_medium: str
    utm_campaign: str
    utm_term: str
    ad_id: str

    # What actually gets transmitted as utm_source / utm_medium
    source: str
    medium: str

    entry_url: str
    submitting_url: str
    page_location: str
    device_type: str
    traffic_type: str

    is_ad_visit: bool = False
    is_social: bool = False
    first_touch: bool = False

    def to_event(self, event_type: str, event_label: str) -> TrackedEvent:
        return TrackedEvent(
            event_type=event_type,
            event_label=event_label,
            utm_source=self.source,
            utm_medium=self.medium,
            utm_campaign=self.utm_campaign,
            utm_term=self.utm_term,
            ad_id=self.ad_id,
            entry_url=self.entry_url,
            submitting_url=self.submitting_url,
            device_type=self.device_type,
            traffic_type=self.traffic_type,
            page_location=self.page_location,
        )

    def to_payload(self) -> dict[str, str]:
        """Attribution fields only, keyed by wire name."""
        payload = self.to_event("", "").to_payload()
        del payload["eventType"], payload["eventLabel"]
        return payload


# --- Parsing helpers ---

def parse_query(query_string: str) -> dict[str, str]:
    """Parse a query string. Duplicate keys: first value wins. Blank values are kept."""
    params: dict[str, str] = {}
    for key, value in parse_qsl(query_string.lstrip("?"), keep_blank_values=True):
        params.setdefault(key, value)
    return params


def referrer_hostname(referrer: str) -> str:
    """Hostname of an absolute referrer URL, "" if it can't be parsed as one."""
    if not referrer:
        return ""
    try:
        parts = urlsplit(referrer.strip())
        if not parts.scheme or not parts.netloc:
            return ""
        return parts.hostname or ""
    except ValueError:
        return ""


def format_path(path: str) -> str:
    """`/` → `/home/`; otherwise exactly one leading and one trailing slash."""
    if path == "/":
        return "/home/"
    if not path.startswith("/"):
        path = "/" + path
    if not path.endswith("/"):
        path += "/"
    return path


# --- Signals ---

def is_ad_visit(query: dict[str, str]) -> bool:
    return any(key in query for key in AD_ID_KEYS)


def is_social_referrer(referrer: str) -> bool:
    return bool(referrer) and SOCIAL_REFERRER.search(referrer) is not None


def fallback_source(referrer: str, social: bool) -> str:
    if social:
        return "facebook"
    return referrer_hostname(referrer) if referrer else ""


def fallback_medium(referrer: str, social: bool) -> str:
    if social:
        return "social"
    return "referral" if referrer else ""


def classify_device(user_agent: str | None) -> str:
    if user_agent and MOBILE_UA.search(user_agent):
        return DEVICE_MOBILE
    return DEVICE_DESKTOP


def classify_traffic(medium: str, ad_visit: bool, social: bool, referrer: str) -> str:
    """First match wins: Paid → Social → Referral → Direct."""
    if medium.lower() in PAID_MEDIUMS or ad_visit:
        return TRAFFIC_PAID
    if social:
        return TRAFFIC_SOCIAL
    if referrer:
        return TRAFFIC_REFERRAL
    return TRAFFIC_DIRECT


# --- First touch ---

def capture_first_touch(store: SessionStore, page: PageView, query: dict[str, str], social: bool) -> bool:
    """Write first-touch attribution if this session hasn't been tracked yet.
    Returns True if it wrote."""
    if store.get(TRACKED_KEY):
        return False

    referrer = page.referrer
    store.set(TRACKED_KEY, "true")
    store.set(ENTRY_URL_KEY, page.path)
    store.set("utm_source", query.get("utm_source") or fallback_source(referrer, social))
    store.set("utm_medium", query.get("utm_medium") or fallback_medium(referrer, social))
    store.set("utm_campaign", query.get("utm_campaign") or "")
    store.set("utm_term", query.get("utm_term") or "")

    for key in AD_ID_KEYS:
        if key in query:
            store.set(key, query[key])

    logger.debug(
        "first_touch_captured",
        entry_url=page.path,
        utm_source=store.get("utm_source"),
        utm_medium=store.get("utm_medium"),
    )
    return True


# --- Main Entry Point ---

def resolve_attribution(page: PageView, store: SessionStore) -> PageAttribution:
    """Run the resolver for one page view. Mutates the store only on first touch."""
    query = page.query
    referrer = page.referrer or ""
    ad_visit = is_ad_visit(query)
    social = is_social_referrer(referrer)

    first_touch = capture_first_touch(store, page, query, social)

    stored = SessionAttribution.load(store)
    utm = {
        "utm_source": stored.source or query.get("utm_source") or "",
        "utm_medium": stored.medium or query.get("utm_medium") or "",
        "utm_campaign": stored.campaign or query.get("utm_campaign") or "",
        "utm_term": stored.term or query.get("utm_term") or "",
    }
    ad_id = next(
        (value for value in (query.get(key) or store.get(key) for key in AD_ID_KEYS) if value),
        "",
    )

    return PageAttribution(
        utm_source=utm["utm_source"],
        utm_medium=utm["utm_medium"],
        utm_campaign=utm["utm_campaign"],
        utm_term=utm["utm_term"],
        ad_id=ad_id,
        source=utm["utm_source"] or fallback_source(referrer, social),
        medium=utm["utm_medium"] or fallback_medium(referrer, social),
        entry_url=format_path(stored.entry_url or page.path),
        submitting_url=format_path(page.path),
        page_location=page.url,
        device_type=classify_device(page.user_agent),
        traffic_type=classify_traffic(utm["utm_medium"], ad_visit, social, referrer),
        is_ad_visit=ad_visit,
        is_social=social,
        first_touch=first_touch,
    )
