"""
Simple Memory-based Rate Limiter.
Per-process only; put a shared limiter (e.g. Redis) in front for multi-worker deployments.
"""
import threading
import time
from fastapi import Request
from typing import Dict, Tuple

from storefront.exceptions import RateLimited

# In-memory storage: {scope:ip: (window_start, count)}
_rate_limit_store: Dict[str, Tuple[float, int]] = {}
_lock = threading.Lock()


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    Dependency factory for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60, scope="initiate"))
    """
    prefix = f"{scope}:"

    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        key = f"{prefix}{ip}"
        now = time.time()

        with _lock:
            _prune(prefix, window, now)

            if key not in _rate_limit_store:
                _rate_limit_store[key] = (now, 1)
                return True

            last_ts, count = _rate_limit_store[key]
            if count >= requests:
                raise RateLimited(
                    f"Too many payment attempts. Try again in {max(int(window - (now - last_ts)), 1)} seconds."
                )

            _rate_limit_store[key] = (last_ts, count + 1)
        return True

    return limiter


def _prune(prefix: str, window: int, now: float) -> None:
    """Drop this scope's expired windows. Caller holds the lock."""
    expired = [
        key for key, (started, _) in _rate_limit_store.items()
        if key.startswith(prefix) and now - started > window
    ]
    for key in expired:
        del _rate_limit_store[key]


def reset_rate_limits():
    """Clear all counters."""
    with _lock:
        _rate_limit_store.clear()
