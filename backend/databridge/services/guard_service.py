"""
Origin and Rate Guard

Admission checks that run before handler logic:
- OriginGuard decides whether a browser origin may call the API and which
  CORS headers to reflect
- RateLimiter is a per-IP token bucket with continuous refill

Both are owned by the application context; bucket state lives in process
memory only and is swept by a scheduler job.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


CORS_ALLOW_METHODS = "GET,POST,PUT,DELETE,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"


# ============================================================================
# Origin Check
# ============================================================================

@dataclass(frozen=True)
class OriginDecision:
    """Verdict for one request's Origin/Referer pair."""
    allowed: bool
    allow_origin: Optional[str] = None  # value for Access-Control-Allow-Origin
    credentials: bool = False
    origin: Optional[str] = None

    def cors_headers(self) -> Dict[str, str]:
        if not self.allow_origin:
            return {}
        headers = {"Access-Control-Allow-Origin": self.allow_origin}
        if self.credentials:
            headers.update({
                "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
                "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": CORS_MAX_AGE,
            })
        return headers


class OriginGuard:
    """
    Allow-list check for browser callers.

    Rules, in order:
    - origin or referer mentioning localhost: allowed, origin reflected
    - origin exactly on the allow-list: allowed, origin reflected
    - referer starting with an allow-listed origin: allowed, that origin reflected
    - no origin at all: server-to-server, allowed with "*"
    - anything else: rejected
    """

    def __init__(self, allowed_origins: List[str]):
        self.allowed_origins = [o.rstrip("/") for o in allowed_origins if o]

    def evaluate(self, origin: Optional[str], referer: Optional[str]) -> OriginDecision:
        referer = referer or ""

        if (origin and "localhost" in origin) or "localhost" in referer:
            return OriginDecision(True, origin or "*", credentials=True, origin=origin)

        if origin:
            if origin.rstrip("/") in self.allowed_origins:
                return OriginDecision(True, origin, credentials=True, origin=origin)
            logger.warning(f"Rejected origin: {origin}")
            return OriginDecision(False, origin=origin)

        if referer:
            for allowed in self.allowed_origins:
                if referer.startswith(allowed):
                    return OriginDecision(True, allowed, credentials=True)

        return OriginDecision(True, "*")

    def reflect_any(self, origin: Optional[str]) -> OriginDecision:
        """Permissive decision used by the ping endpoint."""
        return OriginDecision(True, origin or "*", credentials=True, origin=origin)


# ============================================================================
# Token Bucket Rate Limiter
# ============================================================================

@dataclass
class TokenBucket:
    tokens: float
    last: float  # monotonic seconds of last refill


class RateLimiter:
    """
    Per-client token bucket.

    Capacity is max + burst; max tokens flow back per window, prorated by
    elapsed time. A request that finds less than one token is rejected and
    not charged.

    The read-modify-write on a bucket is not locked; under concurrent
    requests from one IP the count is approximate.
    """

    def __init__(
        self,
        max_requests: int,
        burst: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_requests = max_requests
        self.burst = burst
        self.window_seconds = window_seconds
        self.capacity = max_requests + burst
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}

    def _refill(self, bucket: TokenBucket, now: float) -> None:
        elapsed = max(0.0, now - bucket.last)
        refill = (elapsed / self.window_seconds) * self.max_requests
        bucket.tokens = min(bucket.tokens + refill, self.capacity)
        bucket.last = now

    def allow(self, client_ip: str) -> bool:
        """Consume one token for client_ip; False when the bucket is empty."""
        now = self._clock()
        bucket = self._buckets.get(client_ip)
        if bucket is None:
            bucket = TokenBucket(tokens=float(self.capacity), last=now)
            self._buckets[client_ip] = bucket

        self._refill(bucket, now)

        if bucket.tokens < 1:
            logger.warning(f"Rate limit hit for {client_ip}")
            return False

        bucket.tokens -= 1
        return True

    def available(self, client_ip: str) -> float:
        """Tokens client_ip would have right now (full for unknown clients)."""
        bucket = self._buckets.get(client_ip)
        if bucket is None:
            return float(self.capacity)
        probe = TokenBucket(bucket.tokens, bucket.last)
        self._refill(probe, self._clock())
        return probe.tokens

    @property
    def full_refill_seconds(self) -> float:
        """Time for an empty bucket to refill completely."""
        if self.max_requests <= 0:
            return float("inf")
        return self.window_seconds * self.capacity / self.max_requests

    def sweep(self) -> int:
        """
        Drop buckets idle long enough to be full again.

        A dropped bucket is recreated at capacity on the next request,
        which is exactly what its refill would have produced.

        Returns:
            Number of buckets removed
        """
        cutoff = self._clock() - self.full_refill_seconds
        idle = [ip for ip, bucket in self._buckets.items() if bucket.last <= cutoff]
        for ip in idle:
            del self._buckets[ip]
        if idle:
            logger.info(f"Swept {len(idle)} idle rate-limit buckets, {len(self._buckets)} remain")
        return len(idle)

    def __len__(self) -> int:
        return len(self._buckets)


def client_ip_from(forwarded_for: Optional[str], peer_host: Optional[str]) -> str:
    """First X-Forwarded-For entry, else the socket peer, else "unknown"."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or "unknown"
