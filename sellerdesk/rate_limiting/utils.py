import time
from typing import Optional
from fastapi import Request
from sellerdesk.cache._cache import redis_client
from sellerdesk.rate_limiting.constants import _in_memory_counters, _in_memory_lock, _script_lock, logger
from sellerdesk.rate_limiting.lua_scripts import LUA_FIXED_WINDOW_INCR_AND_PEXPIRE

_script_sha: Optional[str] = None


async def _ensure_lua_loaded() -> Optional[str]:
    """
    Load the Lua script into Redis script cache and store SHA.
    Called once lazily.
    """
    global _script_sha
    if _script_sha:
        return _script_sha
    async with _script_lock:
        if _script_sha:
            return _script_sha
        try:
            _script_sha = await redis_client.script_load(LUA_FIXED_WINDOW_INCR_AND_PEXPIRE)
        except Exception as exc:
            # If script_load fails, we'll fallback to EVAL (slower) in calls
            logger.debug("rate_limit.script_load_failed", extra={"error": type(exc).__name__})
            _script_sha = None
        return _script_sha


def _identifier_from_request(request: Request, trust_forwarded_for: bool = False) -> str:
    """
    client ip ; X-Forwarded-For is only honoured behind a trusted proxy , clients can put anything in it
    """
    if trust_forwarded_for:
        xff = request.headers.get("X-Forwarded-For")
        if xff and xff.split(",")[0].strip():
            return xff.split(",")[0].strip()
    return request.client.host if request.client and request.client.host else "unknown"


# simple non distributed fallback for redis unavailability , use only for short outages
async def _in_memory_allow(key: str, limit: int, window: int):
    """
    Per-process fixed-window counter.
    Returns (allowed, remaining, reset_ts).
    """
    async with _in_memory_lock:
        now = int(time.time())
        existing = _in_memory_counters.get(key)
        if not existing or existing["expires_at"] <= now:
            _prune_expired(now)
            _in_memory_counters[key] = {"count": 1, "expires_at": now + window}
            return True, max(0, limit - 1), now + window

        if existing["count"] >= limit:
            return False, 0, existing["expires_at"]

        existing["count"] += 1
        return True, max(0, limit - existing["count"]), existing["expires_at"]


def _prune_expired(now: int) -> None:
    # called with _in_memory_lock held , whenever a new window starts
    for stale in [k for k, v in _in_memory_counters.items() if v["expires_at"] <= now]:
        del _in_memory_counters[stale]


def reset_in_memory_counters() -> None:
    _in_memory_counters.clear()
