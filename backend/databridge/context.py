"""
Application Context

Everything that outlives a single request, built once and owned
explicitly: the shared HTTP client, the document store handle, the
rate-limit buckets, the scheduler and the services wired on top of them.

The FastAPI lifespan builds one context at startup and closes it at
shutdown; tests build their own with fake transports and inject it.
"""
import logging
from typing import Optional

import httpx

from .config import Settings
from .db import Database
from .services.fulfillment_service import FulfillmentService
from .services.guard_service import OriginGuard, RateLimiter
from .services.instantdata_service import InstantDataService
from .services.notification_service import NotificationDispatcher
from .services.payment_service import PaymentService
from .services.paystack_service import PaystackService
from .services.scheduler import MaintenanceScheduler
from .services.transaction_store import TransactionStore
from .services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

RATE_LIMIT_SWEEP_JOB = "rate_limit_sweep"


class AppContext:
    """
    Process-wide state for one running server.

    Usage:
        context = AppContext(settings)
        await context.start()
        ...
        await context.close()
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Optional[RateLimiter] = None
    ):
        self.settings = settings
        self.http = httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            transport=transport
        )
        self.database = Database(settings.database_url)
        self.store = TransactionStore(self.database)

        self.origin_guard = OriginGuard(settings.allowed_origins)
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(
            max_requests=settings.rate_limit_max,
            burst=settings.rate_limit_burst,
            window_seconds=settings.rate_limit_window_ms / 1000
        )

        self.paystack = PaystackService(
            self.http,
            secret_key=settings.paystack_secret,
            public_key=settings.paystack_public,
            base_url=settings.paystack_base_url
        )
        self.vendor = InstantDataService(
            self.http,
            api_key=settings.instantdata_api_key,
            api_url=settings.instantdata_api_url,
            order_timeout=settings.vendor_timeout_seconds,
            check_timeout=settings.vendor_check_timeout_seconds
        )
        self.notifier = NotificationDispatcher(
            self.http,
            api_key=settings.sendgrid_api_key,
            from_email=settings.sendgrid_from_email,
            operator_email=settings.operator_recipient,
            api_url=settings.sendgrid_api_url,
            shop_name=settings.shop_name
        )

        self.fulfillment = FulfillmentService(
            self.store, self.vendor, self.notifier, settings.supported_networks
        )
        self.payments = PaymentService(
            self.paystack,
            self.vendor,
            self.store,
            self.fulfillment,
            currency=settings.payment_currency,
            default_channels=settings.default_channels
        )
        self.webhooks = WebhookService(self.paystack, self.store, self.fulfillment)

        self.scheduler = MaintenanceScheduler()

    async def _sweep_rate_limits(self) -> None:
        self.rate_limiter.sweep()

    async def start(self) -> None:
        """Create tables and start background jobs. Needs a running event loop."""
        await self.database.initialize()

        if self.rate_limiter.max_requests > 0:
            self.scheduler.add_interval_job(
                RATE_LIMIT_SWEEP_JOB,
                self._sweep_rate_limits,
                seconds=self.settings.bucket_sweep_interval_seconds
            )
        self.scheduler.start()

        if not self.paystack.configured:
            logger.warning("No Paystack secret key configured; payment endpoints will return 500")
        if not self.vendor.configured:
            logger.warning("InstantData API not configured; orders cannot be provisioned")
        if not self.notifier.configured:
            logger.warning("SendGrid not configured; emails will be skipped")

    async def close(self) -> None:
        """Stop jobs and release connections."""
        self.scheduler.shutdown(wait=False)
        await self.http.aclose()
        await self.database.dispose()
