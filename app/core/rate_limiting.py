"""Rate limiting for login attempts, backed by an injectable key/value store."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
import threading
from typing import Any, Protocol


def utc_now() -> datetime:
    return datetime.now(UTC)


class RateLimitStore(Protocol):
    """Minimal expiring key/value store used by the rate limiters."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    def expire(self, key: str, ttl_seconds: int) -> bool: ...

    def delete(self, key: str) -> None: ...


class InMemoryRateLimitStore:
    """
    Thread-safe in-memory store with per-key expiry.

    Suitable for a single process. A Redis-backed store with the same four
    methods can be swapped in for multi-worker deployments.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return dict(value)

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (
                dict(value),
                self._clock() + timedelta(seconds=ttl_seconds),
            )

    def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset the expiry of an existing key. Returns False if the key is gone."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry[1]:
                self._entries.pop(key, None)
                return False
            self._entries[key] = (entry[0], self._clock() + timedelta(seconds=ttl_seconds))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def cleanup(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)


class RateLimiter:
    """
    Fixed-window attempt counter.

    The first attempt opens a window of ``window_seconds``; once
    ``max_attempts`` attempts are recorded inside the window the identifier is
    limited until the window closes.
    """

    def __init__(
        self,
        store: RateLimitStore,
        max_attempts: int,
        window_seconds: int,
        namespace: str = "rl",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.namespace = namespace
        self._clock = clock

    def _key(self, identifier: str) -> str:
        return f"{self.namespace}:{identifier}"

    def is_rate_limited(self, identifier: str) -> tuple[bool, int | None]:
        """
        Check if an identifier is rate limited.

        Returns:
            Tuple of (is_limited, retry_after_seconds)
        """
        record = self.store.get(self._key(identifier))
        if record is None or record["count"] < self.max_attempts:
            return False, None

        reset_at = datetime.fromisoformat(record["reset_at"])
        retry_after = (reset_at - self._clock()).total_seconds()
        return True, int(max(1, retry_after))

    def record_attempt(self, identifier: str) -> int:
        """Record an attempt and return the count inside the current window."""
        key = self._key(identifier)
        record = self.store.get(key)

        if record is None:
            reset_at = self._clock() + timedelta(seconds=self.window_seconds)
            record = {"count": 0, "reset_at": reset_at.isoformat()}

        record["count"] += 1
        remaining = datetime.fromisoformat(record["reset_at"]) - self._clock()
        self.store.set(key, record, max(1, int(remaining.total_seconds())))
        return record["count"]

    def reset(self, identifier: str) -> None:
        """Reset rate limiting for an identifier (e.g., after successful login)."""
        self.store.delete(self._key(identifier))


class LoginRateLimiter:
    """Specialized rate limiter for login attempts, per username and per IP."""

    MAX_ATTEMPTS_PER_IP_MULTIPLIER = 2

    def __init__(
        self,
        store: RateLimitStore,
        max_attempts: int = 5,
        window_seconds: int = 900,
    ) -> None:
        self.username_limiter = RateLimiter(
            store, max_attempts, window_seconds, namespace="login:user"
        )
        self.ip_limiter = RateLimiter(
            store,
            max_attempts * self.MAX_ATTEMPTS_PER_IP_MULTIPLIER,
            window_seconds,
            namespace="login:ip",
        )

    def check_login_allowed(
        self, username: str, ip_address: str | None = None
    ) -> tuple[bool, str | None]:
        """
        Check if a login attempt is allowed.

        Returns:
            Tuple of (is_allowed, error_message)
        """
        limited, retry_after = self.username_limiter.is_rate_limited(username)
        if limited:
            return (
                False,
                f"Too many failed attempts. Try again in {retry_after} seconds",
            )

        if ip_address:
            ip_limited, ip_retry = self.ip_limiter.is_rate_limited(ip_address)
            if ip_limited:
                return (
                    False,
                    f"Too many requests from your IP. Try again in {ip_retry} seconds",
                )

        return True, None

    def record_failed_attempt(
        self, username: str, ip_address: str | None = None
    ) -> None:
        """Record a failed login attempt."""
        self.username_limiter.record_attempt(username)
        if ip_address:
            self.ip_limiter.record_attempt(ip_address)

    def record_successful_login(
        self, username: str, ip_address: str | None = None
    ) -> None:
        """Reset rate limiting after successful login."""
        self.username_limiter.reset(username)
        if ip_address:
            self.ip_limiter.reset(ip_address)
