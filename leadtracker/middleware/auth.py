"""
Admin authentication for the dashboard.

A single admin key (LT_ADMIN_API_KEY) sent as X-Admin-Key.
Empty key in settings = dashboard disabled (every request gets 401).
Compared as SHA-256 digests in constant time.
"""

import hashlib
import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from leadtracker.config import get_settings

import structlog

logger = structlog.get_logger()

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def _hash_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


async def require_admin(raw_key: str | None = Security(admin_key_header)) -> None:
    """FastAPI dependency: 401 unless X-Admin-Key matches the configured admin key."""
    expected = get_settings().admin_api_key
    if not expected or not raw_key:
        raise HTTPException(status_code=401, detail="Admin key required.")

    if not hmac.compare_digest(_hash_key(raw_key), _hash_key(expected)):
        logger.warning("admin_auth_failed", key_prefix=raw_key[:4])
        raise HTTPException(status_code=401, detail="Invalid admin key.")
