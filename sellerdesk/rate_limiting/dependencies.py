import time
from typing import Optional
from fastapi import HTTPException, Request,status
from sellerdesk.rate_limiting.constants import RATE_LIMIT_PREFIX, logger
from sellerdesk.rate_limiting.rate_limit_fixed_window import redis_allow
from sellerdesk.rate_limiting.utils import _identifier_from_request, _in_memory_allow


def rate_limit_dependency(limit=10, window=60, route_key: Optional[str] = None):
    async def _dep(request: Request):
        cfg = getattr(request.app.state, "rate_limit", None) or {}
        if not cfg.get("enabled", True):
            return

        identifier = _identifier_from_request(request, cfg.get("trust_forwarded_for", False))
        key = f"{RATE_LIMIT_PREFIX}:ip:{identifier}:{route_key or request.url.path}"

        if cfg.get("backend", "redis") == "memory":
            allowed, remaining, reset = await _in_memory_allow(key, limit, window)
        else:
            allowed, remaining, reset = await redis_allow(key, limit, window)

        request.state.rate_limit = {"limit": limit, "remaining": remaining, "reset": reset}
        if not allowed:
            retry_after = max(0, reset - int(time.time()))
            logger.warning("rate_limit.exceeded", extra={"client": identifier, "route": route_key or request.url.path})
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(retry_after)}
        )
    return _dep
