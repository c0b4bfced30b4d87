"""Per-address request throttle.

Fixed window: each client address may make ``max_requests`` requests per
``window_seconds``; the window starts with the first request.

Backends:
- Redis (``INCR`` + ``EXPIRE``) when a client is attached, so every API
  instance shares the same counts. Redis keys: ``rate:addr:{address}``
- Otherwise a local in-process table. It is lost on restart and not shared
  between instances; it is a soft throttle, not a security control.

Fail mode: Redis errors fail open (the request is allowed and logged).
"""

import threading
import time
from collections.abc import Callable

from tandem.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 900

# Local table entries are pruned once it grows past this many addresses
LOCAL_PRUNE_THRESHOLD = 10_000


class RateLimiter:
    """Injected rate limiter; thread-safe for FastAPI's worker threadpool."""

    def __init__(
        self,
        redis_client=None,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            redis_client: Redis client instance (sync). If None, counts are local.
            max_requests: Requests allowed per address per window.
            window_seconds: Window length.
            clock: Monotonic clock for the local table (injectable for tests).
        """
        self._redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # address -> (window_started_at, count)
        self._local: dict[str, tuple[float, int]] = {}

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "local"

    def attach_redis(self, redis_client) -> None:
        """Switch to shared counts (called at app startup once Redis is reachable)."""
        self._redis = redis_client

    def hit(self, address: str) -> int | None:
        """Count one request for ``address``.

        Returns:
            None if the request is allowed, otherwise seconds until the window resets.
        """
        if self._redis is not None:
            return self._hit_redis(address)
        return self._hit_local(address)

    def _hit_redis(self, address: str) -> int | None:
        key = f"rate:addr:{address}"
        try:
            count = int(self._redis.incr(key))
            if count == 1:
                self._redis.expire(key, self.window_seconds)
            if count <= self.max_requests:
                return None
            ttl = int(self._redis.ttl(key))
            if ttl < 0:
                # Key lost its expiry (e.g. crash between INCR and EXPIRE)
                self._redis.expire(key, self.window_seconds)
                ttl = self.window_seconds
        except Exception as e:
            logger.warning("rate_limit_check_failed", backend="redis", error=str(e))
            return None  # Fail open

        return max(1, ttl)

    def _hit_local(self, address: str) -> int | None:
        now = self._clock()
        with self._lock:
            if len(self._local) > LOCAL_PRUNE_THRESHOLD:
                self._prune(now)

            started_at, count = self._local.get(address, (now, 0))
            if now - started_at >= self.window_seconds:
                started_at, count = now, 0
            count += 1
            self._local[address] = (started_at, count)

        if count <= self.max_requests:
            return None
        return max(1, int(started_at + self.window_seconds - now))

    def _prune(self, now: float) -> None:
        expired = [
            address
            for address, (started_at, _) in self._local.items()
            if now - started_at >= self.window_seconds
        ]
        for address in expired:
            del self._local[address]

    def reset(self) -> None:
        """Forget all local counts."""
        with self._lock:
            self._local.clear()
