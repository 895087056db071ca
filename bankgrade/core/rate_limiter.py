"""Rate limiting and pacing utilities for Bank Grade Security."""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .logger import get_logger


Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit."""
    requests_per_minute: int
    burst_size: Optional[int] = None  # Allow bursts up to this size

    def __post_init__(self):
        if self.burst_size is None:
            self.burst_size = min(self.requests_per_minute, 5)


class TokenBucket:
    """Token bucket rate limiter implementation."""

    def __init__(
        self,
        rate: float,
        capacity: int,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
    ):
        """
        Initialize token bucket.

        Args:
            rate: Tokens added per second
            capacity: Maximum tokens in bucket
            clock: Monotonic time source
            sleep: Function used to wait for tokens
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self._clock = clock
        self._sleep = sleep
        self.last_update = clock()
        self.lock = threading.Lock()

    def acquire(self, tokens: int = 1, blocking: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Acquire tokens from the bucket.

        Args:
            tokens: Number of tokens to acquire
            blocking: Whether to block until tokens are available
            timeout: Maximum time to wait (if blocking)

        Returns:
            True if tokens were acquired, False otherwise
        """
        start_time = self._clock()

        while True:
            with self.lock:
                now = self._clock()
                elapsed = now - self.last_update
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
                self.last_update = now

                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return True

                if not blocking:
                    return False

                wait_time = (tokens - self.tokens) / self.rate

            if timeout is not None:
                elapsed = self._clock() - start_time
                if elapsed + wait_time > timeout:
                    return False
                wait_time = min(wait_time, timeout - elapsed)

            self._sleep(min(wait_time, 0.1))  # Sleep in small increments


class FixedDelayPacer:
    """
    Leaky-bucket pacer for the scan queue.

    A bucket of capacity one refilled every ``delay`` seconds: the first
    ``wait()`` returns immediately, every following one returns no sooner than
    ``delay`` seconds after the previous one. A non-positive delay disables
    pacing.
    """

    def __init__(self, delay: float, clock: Clock = time.monotonic, sleep: Sleeper = time.sleep):
        self.delay = delay
        self._bucket = TokenBucket(1.0 / delay, 1, clock=clock, sleep=sleep) if delay > 0 else None

    def wait(self) -> None:
        if self._bucket is not None:
            self._bucket.acquire(blocking=True)


class RateLimiter:
    """
    Rate limiter that manages multiple external services with different limits.

    Uses token bucket algorithm for smooth rate limiting with burst support.
    """

    def __init__(self, default_rpm: int = 60):
        """
        Initialize rate limiter.

        Args:
            default_rpm: Default requests per minute for unconfigured services
        """
        self.default_rpm = default_rpm
        self._buckets: Dict[str, TokenBucket] = {}
        self._configs: Dict[str, RateLimitConfig] = {}
        self._stats: Dict[str, Dict[str, int]] = defaultdict(lambda: {"acquired": 0, "blocked": 0})
        self._lock = threading.Lock()
        self.logger = get_logger("rate_limiter")

    def configure(self, service: str, requests_per_minute: int, burst_size: Optional[int] = None) -> None:
        """
        Configure rate limit for a service.

        Args:
            service: Service name (e.g. 'doh', 'hstspreload')
            requests_per_minute: Maximum requests per minute
            burst_size: Maximum burst size
        """
        with self._lock:
            config = RateLimitConfig(requests_per_minute, burst_size)
            self._configs[service] = config

            rate = requests_per_minute / 60.0
            capacity = config.burst_size or min(requests_per_minute, 5)
            self._buckets[service] = TokenBucket(rate, capacity)

            self.logger.debug(f"Configured rate limit for {service}: {requests_per_minute} rpm, burst: {capacity}")

    def configure_from_dict(self, limits: Dict[str, int]) -> None:
        """Configure multiple rate limits from a service -> rpm mapping."""
        for service, rpm in limits.items():
            self.configure(service, rpm)

    def acquire(self, service: str, blocking: bool = True, timeout: Optional[float] = 30.0) -> bool:
        """
        Acquire permission to make a request to a service.

        Returns:
            True if permission granted, False otherwise
        """
        bucket = self._get_or_create_bucket(service)

        acquired = bucket.acquire(blocking=blocking, timeout=timeout)

        with self._lock:
            if acquired:
                self._stats[service]["acquired"] += 1
            else:
                self._stats[service]["blocked"] += 1
                self.logger.warning(f"Rate limit exceeded for {service}")

        return acquired

    def _get_or_create_bucket(self, service: str) -> TokenBucket:
        with self._lock:
            if service not in self._buckets:
                rate = self.default_rpm / 60.0
                capacity = min(self.default_rpm, 5)
                self._buckets[service] = TokenBucket(rate, capacity)
                self.logger.debug(f"Created default rate limit for {service}: {self.default_rpm} rpm")
            return self._buckets[service]

    def get_stats(self, service: Optional[str] = None) -> Dict:
        """Get rate limiting statistics for one service or all of them."""
        with self._lock:
            if service:
                return dict(self._stats[service])
            return {svc: dict(stats) for svc, stats in self._stats.items()}

    def wait(self, service: str, timeout: Optional[float] = 30.0) -> None:
        """
        Wait until rate limit allows a request.

        Raises:
            TimeoutError: If timeout exceeded
        """
        if not self.acquire(service, blocking=True, timeout=timeout):
            raise TimeoutError(f"Rate limit timeout for {service}")
