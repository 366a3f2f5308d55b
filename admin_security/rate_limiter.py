"""
Rate Limiting System
Fixed-window counters bounding how often a keyed operation (login attempts, API calls) may proceed

Counts reset at each window boundary, so a burst straddling two adjacent
windows can momentarily pass up to twice the limit.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Any


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitRule:
    """Rate limit rule configuration"""
    max_attempts: int
    time_window_seconds: float

    @property
    def window_ms(self) -> int:
        return int(self.time_window_seconds * 1000)


@dataclass
class RateLimitRecord:
    """Attempts consumed for one key in the current window"""
    count: int
    reset_time: int


# Presets per endpoint family
RATE_LIMIT_CONFIGS: Dict[str, Dict[str, RateLimitRule]] = {
    'AUTH': {
        'LOGIN': RateLimitRule(max_attempts=5, time_window_seconds=15 * 60),
        'REGISTER': RateLimitRule(max_attempts=3, time_window_seconds=60 * 60),
        'FORGOT_PASSWORD': RateLimitRule(max_attempts=3, time_window_seconds=60 * 60),
    },
    'API': {
        'READ': RateLimitRule(max_attempts=1000, time_window_seconds=15 * 60),
        'WRITE': RateLimitRule(max_attempts=200, time_window_seconds=15 * 60),
        'UPLOAD': RateLimitRule(max_attempts=50, time_window_seconds=15 * 60),
    },
    'SEARCH': {
        'GENERAL': RateLimitRule(max_attempts=100, time_window_seconds=15 * 60),
        'AUTOCOMPLETE': RateLimitRule(max_attempts=500, time_window_seconds=15 * 60),
    },
    'EXPORT': {
        'REPORT': RateLimitRule(max_attempts=10, time_window_seconds=60 * 60),
        'BULK_EXPORT': RateLimitRule(max_attempts=5, time_window_seconds=60 * 60),
    },
}


class RateLimiter:
    """Fixed-window rate limiter keyed by arbitrary strings"""

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], int] = now_ms):
        if not isinstance(limit, int) or limit <= 0:
            raise ValueError("limit must be a positive integer")
        window_ms = int(window_seconds * 1000)
        if window_ms <= 0:
            raise ValueError("window must be positive")

        self.limit = limit
        self.window_ms = window_ms
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        # consume() may be called from the UI thread and worker threads
        self._lock = threading.Lock()

    @classmethod
    def from_rule(cls, rule: RateLimitRule, clock: Callable[[], int] = now_ms) -> "RateLimiter":
        return cls(rule.max_attempts, rule.time_window_seconds, clock=clock)

    @classmethod
    def from_config(cls, group: str, name: str, clock: Callable[[], int] = now_ms) -> "RateLimiter":
        """Build a limiter from one of the RATE_LIMIT_CONFIGS presets"""
        try:
            rule = RATE_LIMIT_CONFIGS[group][name]
        except KeyError:
            raise ValueError(f"Unknown rate limit preset: {group}.{name}")
        return cls.from_rule(rule, clock=clock)

    def consume(self, key: str) -> bool:
        """
        Try to consume one attempt for key

        Returns:
            bool: True if the attempt is allowed, False if the window is exhausted
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(key)

            if record is None or now >= record.reset_time:
                self._records[key] = RateLimitRecord(count=1, reset_time=now + self.window_ms)
                return True

            if record.count < self.limit:
                record.count += 1
                return True

            # Denials leave the record untouched
            return False

    def reset(self, key: str):
        """Forget key so its next attempt starts a fresh window"""
        with self._lock:
            self._records.pop(key, None)

    def get_status(self, key: str) -> Optional[Dict[str, Any]]:
        """Get current window usage for key, or None if it has no live window"""
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None or now >= record.reset_time:
                return None

            return {
                'requests': record.count,
                'limit': self.limit,
                'remaining': max(0, self.limit - record.count),
                'reset_time': record.reset_time,
            }

    def cleanup_expired(self) -> int:
        """
        Drop records whose window has elapsed

        Returns:
            int: Number of records removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if now >= record.reset_time]
            for key in expired:
                del self._records[key]
            return len(expired)

    def get_statistics(self, top: int = 10) -> Dict[str, Any]:
        """Get rate limiter statistics for live windows"""
        now = self._clock()
        with self._lock:
            active = [
                (key, record.count) for key, record in self._records.items()
                if now < record.reset_time
            ]

        active.sort(key=lambda item: item[1], reverse=True)
        top_consumers: List[Dict[str, Any]] = [
            {'identifier': key, 'requests': count} for key, count in active[:top]
        ]

        return {
            'total_identifiers': len(active),
            'limit': self.limit,
            'window_ms': self.window_ms,
            'top_consumers': top_consumers,
        }
