"""
Rate limiter: in-memory sliding window, per client IP.

Guards the public record endpoint against click spam from a single address.
Single-process only; each worker keeps its own window.
"""

import time
from fastapi import HTTPException, Request
from leadtracker.config import get_settings

import structlog

logger = structlog.get_logger()

_memory_store: dict[str, list[float]] = {}
_last_sweep = 0.0

_PRIVATE_PREFIXES = (
    "10.", "192.168.", "127.", "::1",
    *(f"172.{n}." for n in range(16, 32)),
)


def _sweep_idle(cutoff: float) -> None:
    """Drop keys with no hits left in the window."""
    for key in [k for k, hits in _memory_store.items() if not hits or hits[-1] <= cutoff]:
        del _memory_store[key]


def _sliding_window_check(key: str, limit: int, window_seconds: int = 60) -> tuple[bool, int]:
    global _last_sweep
    now = time.time()
    cutoff = now - window_seconds

    # At most one full pass per window.
    if now - _last_sweep >= window_seconds:
        _sweep_idle(cutoff)
        _last_sweep = now

    hits = [t for t in _memory_store.get(key, []) if t > cutoff]
    if len(hits) >= limit:
        _memory_store[key] = hits
        return False, 0

    hits.append(now)
    _memory_store[key] = hits
    return True, limit - len(hits)


def check_rate_limit(key: str, limit: int, window: int = 60) -> int:
    allowed, remaining = _sliding_window_check(key, limit, window)
    if not allowed:
        logger.info("rate_limited", key=key, limit=limit)
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Slow down.",
            headers={
                "Retry-After": str(window),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )
    return remaining


def reset_rate_limits() -> None:
    global _last_sweep
    _memory_store.clear()
    _last_sweep = 0.0


def get_real_ip(request: Request) -> str:
    """First public address in x-forwarded-for, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ips = [ip.strip() for ip in forwarded.split(",")]
        for ip in ips:
            if not ip.startswith(_PRIVATE_PREFIXES):
                return ip
        return ips[0]
    return request.client.host if request.client else "unknown"


def rate_limit_ip(request: Request, limit: int | None = None) -> int:
    settings = get_settings()
    return check_rate_limit(
        f"ip:{get_real_ip(request)}",
        limit or settings.rate_limit_per_ip_per_minute,
    )
