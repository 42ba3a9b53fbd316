"""
Page nonce minting & verification.

Format:  {uid}:{expiry_ts}:{hmac_sig}
- uid        → random token, unique per rendered page
- expiry_ts  → unix timestamp when this nonce stops being accepted
- hmac_sig   → HMAC-SHA256("record-event:" + uid:expiry_ts, secret), hex-truncated to 16 chars

Issued with the tracker config; the record endpoint rejects anything that doesn't verify.
No cookie or server-side state involved.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass

from leadtracker.config import get_settings

NONCE_ACTION = "record-event"


def _sign(payload: str, secret: str) -> str:
    """HMAC-SHA256, truncated to 16 hex chars."""
    sig = hmac.new(secret.encode(), f"{NONCE_ACTION}:{payload}".encode(), hashlib.sha256).hexdigest()
    return sig[:16]


@dataclass(frozen=True)
class Nonce:
    uid: str
    expiry: int
    signature: str

    def __str__(self) -> str:
        return f"{self.uid}:{self.expiry}:{self.signature}"

    @property
    def is_expired(self) -> bool:
        return time.time() > self.expiry


def mint_nonce() -> Nonce:
    """Create a new signed nonce."""
    settings = get_settings()
    uid = secrets.token_hex(8)
    expiry = int(time.time()) + settings.nonce_expiry_seconds
    sig = _sign(f"{uid}:{expiry}", settings.nonce_secret)
    return Nonce(uid=uid, expiry=expiry, signature=sig)


def verify_nonce(raw: str | None) -> Nonce | None:
    """Parse and verify a nonce string.
    Returns Nonce if valid and not expired, else None."""
    if not raw:
        return None

    settings = get_settings()
    parts = raw.split(":")
    if len(parts) != 3:
        return None

    uid, expiry_str, sig = parts
    try:
        expiry = int(expiry_str)
    except ValueError:
        return None

    expected = _sign(f"{uid}:{expiry}", settings.nonce_secret)
    if not hmac.compare_digest(sig, expected):
        return None

    nonce = Nonce(uid=uid, expiry=expiry, signature=sig)
    if nonce.is_expired:
        return None

    return nonce
