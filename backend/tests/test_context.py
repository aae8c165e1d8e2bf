"""
Tests for application context wiring and the maintenance scheduler.
"""
import pytest

from databridge.config import Settings
from databridge.context import RATE_LIMIT_SWEEP_JOB, AppContext
from databridge.services.guard_service import RateLimiter


class TestAppContext:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_schedules_sweep(self, context: AppContext) -> None:
        assert context.scheduler.running
        job = context.scheduler.get_job(RATE_LIMIT_SWEEP_JOB)
        assert job is not None
        assert job.trigger.interval.total_seconds() == context.settings.bucket_sweep_interval_seconds

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweep_job_clears_idle_buckets(self, context: AppContext) -> None:
        context.rate_limiter.allow("203.0.113.9")
        bucket = context.rate_limiter._buckets["203.0.113.9"]
        bucket.last -= context.rate_limiter.full_refill_seconds

        await context._sweep_rate_limits()

        assert len(context.rate_limiter) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_stops_scheduler(self, test_settings: Settings) -> None:
        context = AppContext(test_settings)
        await context.start()

        await context.close()

        assert not context.scheduler.running
        assert context.http.is_closed

    @pytest.mark.unit
    def test_rate_limit_settings_flow_into_limiter(self, tmp_path) -> None:
        settings = Settings(
            rate_limit_window_ms=30_000,
            rate_limit_max=10,
            rate_limit_burst=5,
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}",
        )
        context = AppContext(settings)

        assert context.rate_limiter.capacity == 15
        assert context.rate_limiter.window_seconds == 30.0

    @pytest.mark.unit
    def test_injected_limiter_is_kept(self, test_settings: Settings) -> None:
        limiter = RateLimiter(max_requests=2, burst=0, window_seconds=60)

        context = AppContext(test_settings, rate_limiter=limiter)

        assert context.rate_limiter is limiter


class TestSettings:

    @pytest.mark.unit
    def test_live_keys_take_precedence(self) -> None:
        settings = Settings(
            paystack_live_secret_key="sk_live",
            paystack_secret_key="sk_plain",
            paystack_test_secret_key="sk_test",
            paystack_test_public_key="pk_test",
        )

        assert settings.paystack_secret == "sk_live"
        assert settings.paystack_public == "pk_test"

    @pytest.mark.unit
    def test_extra_cors_origins(self) -> None:
        settings = Settings(cors_origin="https://a.example.com, https://b.example.com")

        assert "https://a.example.com" in settings.allowed_origins
        assert "https://b.example.com" in settings.allowed_origins
        assert "http://localhost:5173" in settings.allowed_origins

    @pytest.mark.unit
    def test_operator_defaults_to_sender(self) -> None:
        settings = Settings(sendgrid_from_email="shop@example.com")

        assert settings.operator_recipient == "shop@example.com"
