import time
import hashlib
from typing import Dict
from collections import defaultdict
import threading

from natours.core.config import settings


class RateLimiter:
    """Thread-safe sliding-window rate limiter keyed by client."""

    def __init__(self, max_requests: int, window_seconds: int):
        self._lock = threading.Lock()
        self._attempts: Dict[str, list] = defaultdict(list)

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._last_prune = time.time()

    def _clean_old_attempts(self, key: str, window_seconds: int):
        """Remove attempts older than the window."""
        now = time.time()
        cutoff = now - window_seconds
        recent = [attempt for attempt in self._attempts.get(key, ()) if attempt > cutoff]
        if recent:
            self._attempts[key] = recent
        else:
            self._attempts.pop(key, None)

    def _prune_idle_clients(self):
        """Forget clients with no attempts left in the window, at most once per window."""
        now = time.time()
        if now - self._last_prune < self.window_seconds:
            return
        cutoff = now - self.window_seconds
        idle = [key for key, attempts in self._attempts.items() if not attempts or attempts[-1] <= cutoff]
        for key in idle:
            del self._attempts[key]
        self._last_prune = now

    def _get_key(self, identifier: str, action: str) -> str:
        """Generate a key for rate limiting."""
        return f"{action}:{hashlib.sha256(identifier.encode()).hexdigest()[:16]}"

    def check_api_rate_limit(self, client_id: str) -> bool:
        """Record a request and report whether the client is within its quota."""
        with self._lock:
            key = self._get_key(client_id, "api")

            self._prune_idle_clients()
            self._clean_old_attempts(key, self.window_seconds)

            if len(self._attempts[key]) < self.max_requests:
                self._attempts[key].append(time.time())
                return True
            else:
                return False

    def reset(self):
        """Forget every tracked client."""
        with self._lock:
            self._attempts.clear()

    def get_stats(self) -> Dict[str, int]:
        """Get rate limiter statistics."""
        with self._lock:
            return {
                "active_rate_limits": len(self._attempts),
                "total_attempts_tracked": sum(len(attempts) for attempts in self._attempts.values())
            }


# Global rate limiter instance
rate_limiter = RateLimiter(
    max_requests=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds,
)
