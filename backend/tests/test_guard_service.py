"""
Unit tests for the origin check and the token-bucket rate limiter.
"""
import pytest

from databridge.services.guard_service import OriginGuard, RateLimiter, client_ip_from


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(max_requests=100, burst=20, window_seconds=60, clock=clock)


class TestRateLimiter:
    """Test suite for RateLimiter."""

    @pytest.mark.unit
    def test_burst_capacity_then_reject(self, limiter: RateLimiter) -> None:
        """max + burst requests pass back to back, the next one is refused."""
        results = [limiter.allow("10.0.0.1") for _ in range(121)]

        assert all(results[:120])
        assert results[120] is False

    @pytest.mark.unit
    def test_rejected_request_is_not_charged(self, limiter: RateLimiter) -> None:
        for _ in range(120):
            limiter.allow("10.0.0.1")

        assert limiter.allow("10.0.0.1") is False
        assert limiter.available("10.0.0.1") == pytest.approx(0.0)

    @pytest.mark.unit
    def test_refills_after_window(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(120):
            limiter.allow("10.0.0.1")

        clock.advance(60)

        assert limiter.available("10.0.0.1") >= 100
        assert all(limiter.allow("10.0.0.1") for _ in range(100))

    @pytest.mark.unit
    def test_partial_refill_is_prorated(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(120):
            limiter.allow("10.0.0.1")

        clock.advance(6)  # a tenth of the window

        assert limiter.available("10.0.0.1") == pytest.approx(10.0)

    @pytest.mark.unit
    def test_refill_capped_at_capacity(self, limiter: RateLimiter, clock: FakeClock) -> None:
        limiter.allow("10.0.0.1")
        clock.advance(3600)

        assert limiter.available("10.0.0.1") == pytest.approx(120.0)

    @pytest.mark.unit
    def test_buckets_are_per_ip(self, limiter: RateLimiter) -> None:
        for _ in range(120):
            limiter.allow("10.0.0.1")

        assert limiter.allow("10.0.0.1") is False
        assert limiter.allow("10.0.0.2") is True

    @pytest.mark.unit
    def test_sweep_removes_only_idle_buckets(self, limiter: RateLimiter, clock: FakeClock) -> None:
        limiter.allow("idle")
        clock.advance(limiter.full_refill_seconds)
        limiter.allow("busy")

        removed = limiter.sweep()

        assert removed == 1
        assert len(limiter) == 1
        assert limiter.available("idle") == pytest.approx(120.0)

    @pytest.mark.unit
    def test_full_refill_seconds(self, limiter: RateLimiter) -> None:
        assert limiter.full_refill_seconds == pytest.approx(72.0)


class TestOriginGuard:
    """Test suite for OriginGuard."""

    @pytest.fixture
    def guard(self) -> OriginGuard:
        return OriginGuard(["https://shop.example.com", "https://www.shop.example.com/"])

    @pytest.mark.unit
    def test_allow_listed_origin_is_reflected(self, guard: OriginGuard) -> None:
        decision = guard.evaluate("https://shop.example.com", None)

        assert decision.allowed
        headers = decision.cors_headers()
        assert headers["Access-Control-Allow-Origin"] == "https://shop.example.com"
        assert headers["Access-Control-Allow-Credentials"] == "true"

    @pytest.mark.unit
    def test_trailing_slash_on_allow_list_is_ignored(self, guard: OriginGuard) -> None:
        assert guard.evaluate("https://www.shop.example.com", None).allowed

    @pytest.mark.unit
    def test_unknown_origin_rejected(self, guard: OriginGuard) -> None:
        decision = guard.evaluate("https://evil.example.net", None)

        assert not decision.allowed
        assert decision.cors_headers() == {}

    @pytest.mark.unit
    def test_localhost_allowed(self, guard: OriginGuard) -> None:
        assert guard.evaluate("http://localhost:5173", None).allowed
        assert guard.evaluate(None, "http://localhost:3000/checkout").allowed

    @pytest.mark.unit
    def test_referer_prefix_allowed(self, guard: OriginGuard) -> None:
        decision = guard.evaluate(None, "https://shop.example.com/checkout?x=1")

        assert decision.allowed
        assert decision.allow_origin == "https://shop.example.com"

    @pytest.mark.unit
    def test_no_origin_is_server_to_server(self, guard: OriginGuard) -> None:
        decision = guard.evaluate(None, None)

        assert decision.allowed
        assert decision.cors_headers() == {"Access-Control-Allow-Origin": "*"}

    @pytest.mark.unit
    def test_reflect_any(self, guard: OriginGuard) -> None:
        decision = guard.reflect_any("https://evil.example.net")

        assert decision.allowed
        assert decision.allow_origin == "https://evil.example.net"


class TestClientIp:

    @pytest.mark.unit
    def test_first_forwarded_entry(self) -> None:
        assert client_ip_from("203.0.113.7, 10.0.0.1", "10.0.0.2") == "203.0.113.7"

    @pytest.mark.unit
    def test_falls_back_to_peer(self) -> None:
        assert client_ip_from(None, "10.0.0.2") == "10.0.0.2"
        assert client_ip_from("", None) == "unknown"
