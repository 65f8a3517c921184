"""
In-Memory Rate Limiter
======================

Token bucket rate limiting keyed by an arbitrary string (usually
"<route>:<client ip>").

Design:
- In-memory cache for fast lookups (O(1))
- Buckets hold ``max_tokens``; a full refill takes ``interval`` seconds
- Refill is credited in whole tokens; the refill clock only moves when at
  least one token is added, so slow trickles still accumulate
- Idle buckets are purged by a background cleanup task

Limits are per process. Multiple workers each keep their own buckets.
"""

import asyncio
import logging
import math
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, Request

from jury.config import RATE_LIMITS

logger = logging.getLogger(__name__)

# Structure: {key: {"tokens": int, "last_refill": float}}
_buckets: Dict[str, Dict] = {}
_buckets_lock = threading.Lock()


def rate_limit(
    key: str,
    max_tokens: int = RATE_LIMITS.DEFAULT,
    interval: int = RATE_LIMITS.INTERVAL_SECONDS,
    now: Optional[float] = None,
) -> Tuple[bool, int]:
    """
    Consume one token for ``key``.

    Args:
        key: Bucket key (e.g. "vote:203.0.113.7")
        max_tokens: Bucket capacity
        interval: Seconds for a full refill
        now: Current time in seconds (defaults to time.time())

    Returns:
        Tuple[bool, int]: (allowed, remaining tokens)
    """
    if now is None:
        now = time.time()

    with _buckets_lock:
        entry = _buckets.get(key)

        if entry is None:
            _buckets[key] = {"tokens": max_tokens - 1, "last_refill": now}
            return True, max_tokens - 1

        elapsed = now - entry["last_refill"]
        tokens_to_add = math.floor((elapsed / interval) * max_tokens)

        if tokens_to_add > 0:
            entry["tokens"] = min(max_tokens, entry["tokens"] + tokens_to_add)
            entry["last_refill"] = now

        if entry["tokens"] <= 0:
            return False, 0

        entry["tokens"] -= 1
        return True, entry["tokens"]


def get_client_ip(request: Request) -> str:
    """
    Best-effort client IP.

    Order: first X-Forwarded-For hop, X-Real-IP, socket peer, "unknown".
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def enforce_rate_limit(
    request: Request,
    scope: str,
    max_tokens: int = RATE_LIMITS.DEFAULT,
    interval: int = RATE_LIMITS.INTERVAL_SECONDS,
    message: str = "Too many requests. Please try again later.",
) -> int:
    """
    Rate limit the caller's IP for ``scope`` or raise HTTP 429.

    Returns:
        int: Remaining tokens
    """
    ip = get_client_ip(request)
    allowed, remaining = rate_limit(f"{scope}:{ip}", max_tokens=max_tokens, interval=interval)
    if not allowed:
        logger.warning(f"⚠️ Rate limit exceeded for {scope} from {ip}")
        raise HTTPException(
            status_code=429,
            detail=message,
            headers={"X-RateLimit-Remaining": str(remaining)},
        )
    return remaining


def cleanup_old_entries(now: Optional[float] = None, max_idle: int = RATE_LIMITS.MAX_IDLE_SECONDS) -> int:
    """
    Remove buckets that have not refilled within ``max_idle`` seconds.

    Returns:
        int: Number of buckets removed
    """
    if now is None:
        now = time.time()

    with _buckets_lock:
        to_remove = [key for key, entry in _buckets.items() if now - entry["last_refill"] > max_idle]
        for key in to_remove:
            del _buckets[key]

    if to_remove:
        logger.info(f"🧹 Cleaned up {len(to_remove)} idle rate limit buckets")

    return len(to_remove)


def reset_rate_limits():
    """Drop every bucket (used by tests and admin tooling)."""
    with _buckets_lock:
        _buckets.clear()


async def rate_limiter_cleanup_task():
    """
    Background task to purge idle buckets.

    Runs every CLEANUP_INTERVAL_SECONDS to prevent memory growth.
    """
    logger.info("🚀 Rate limiter cleanup task started")

    while True:
        try:
            await asyncio.sleep(RATE_LIMITS.CLEANUP_INTERVAL_SECONDS)
            cleanup_old_entries()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"❌ Rate limiter cleanup error: {e}")
            await asyncio.sleep(60)


def rate_limited(
    scope: str,
    max_tokens: int = RATE_LIMITS.DEFAULT,
    interval: int = RATE_LIMITS.INTERVAL_SECONDS,
    message: str = "Too many requests. Please try again later.",
):
    """
    Dependency factory for route-level limits, applied before auth runs.

    Example:
        @router.get("/polls", dependencies=[Depends(rate_limited("api-v1-polls", 30))])
    """

    async def dependency(request: Request):
        enforce_rate_limit(request, scope, max_tokens=max_tokens, interval=interval, message=message)

    return dependency
