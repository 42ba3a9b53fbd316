"""
Tracker endpoints.

GET  /v1/tracker/config   → {"ajax_url", "nonce"}: the config a page injects before the tracker runs.
POST /v1/tracker/resolve  → server-side attribution for one page view.
                            The session store is the signed browser-session cookie
                            (SessionMiddleware, no max_age), so first touch sticks
                            until the browser session ends, same as the page-side store.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from leadtracker.config import get_settings
from leadtracker.core.attribution import PageView, resolve_attribution
from leadtracker.core.nonce import mint_nonce
from leadtracker.core.session_store import MappingSessionStore

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/tracker", tags=["tracker"])


class ResolvePayload(BaseModel):
    page_location: str
    referrer: str = ""


@router.get("/config")
async def tracker_config():
    settings = get_settings()
    return {
        "ajax_url": f"{settings.base_url.rstrip('/')}/v1/ajax",
        "nonce": str(mint_nonce()),
    }


@router.post("/resolve")
async def resolve_page(payload: ResolvePayload, request: Request):
    page = PageView(
        url=payload.page_location,
        referrer=payload.referrer,
        user_agent=request.headers.get("user-agent", ""),
    )
    attribution = resolve_attribution(page, MappingSessionStore(request.session))

    if attribution.first_touch:
        logger.info(
            "session_first_touch",
            entry_url=attribution.entry_url,
            utm_source=attribution.utm_source,
            utm_medium=attribution.utm_medium,
            traffic_type=attribution.traffic_type,
        )

    return {**attribution.to_payload(), "firstTouch": attribution.first_touch}
