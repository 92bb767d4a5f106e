import asyncio
from sellerdesk.common.logging_setup import get_logger

logger = get_logger("sellerdesk.rate_limiting")

RATE_LIMIT_PREFIX = "rl"    # redis key prefix
FAIL_OPEN = True                  # if redis is unavailable, allow requests (True) or deny (False)
USE_IN_MEMORY_FALLBACK = True     # allow simple local fallback when redis fails (not distributed)

_in_memory_counters = {}
_in_memory_lock = asyncio.Lock()
_script_lock = asyncio.Lock()
