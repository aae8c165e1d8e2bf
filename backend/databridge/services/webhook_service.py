"""
Webhook Service

Handles Paystack webhook deliveries. The signature is checked against the
raw body before anything is parsed or any outbound call is made. After
that the sender always gets a 200 with a processing status, since Paystack
only needs an acknowledgement and retries on anything else.

Deliveries are idempotent per reference: the transaction document is
upserted, and a reference already fulfilled is not ordered again.
"""
import json
import logging
import time
from typing import Any, Dict

from ..exceptions import ConfigurationError, SignatureInvalidError, UpstreamError
from .fulfillment_service import FulfillmentService
from .paystack_service import PaystackService
from .signature_service import verify_webhook_signature
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"
SERVICE_INACTIVE_REASON = "Service inactive: provisioning paused"


class WebhookService:
    """Verify, re-confirm and fulfil Paystack charge events."""

    def __init__(
        self,
        paystack: PaystackService,
        store: TransactionStore,
        fulfillment: FulfillmentService
    ):
        self.paystack = paystack
        self.store = store
        self.fulfillment = fulfillment

    async def handle(self, raw_body: bytes, signature: str) -> Dict[str, Any]:
        """
        Process one webhook delivery.

        Args:
            raw_body: Exact request bytes
            signature: x-paystack-signature header value

        Returns:
            {"success": True, "status": <processing status>}

        Raises:
            ConfigurationError: no Paystack secret key to check against
            SignatureInvalidError: signature mismatch (nothing else was done)
        """
        if not self.paystack.configured:
            raise ConfigurationError("Server not configured with Paystack secret key")

        if not verify_webhook_signature(raw_body, signature, self.paystack.secret_key):
            logger.warning("[Webhook] Invalid signature, delivery rejected")
            raise SignatureInvalidError()

        started = time.monotonic()
        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.error("[Webhook] Signed body is not valid JSON")
            return {"success": True, "status": "invalid_payload"}

        event_type = event.get("event") if isinstance(event, dict) else None
        status = await self._dispatch(event_type, event)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[Webhook] event={event_type} status={status} ms={duration_ms}")
        return {"success": True, "status": status}

    async def _dispatch(self, event_type: str, event: Dict[str, Any]) -> str:
        if event_type != CHARGE_SUCCESS:
            return "ignored"

        data = event.get("data") or {}
        reference = data.get("reference") if isinstance(data, dict) else None
        if not reference:
            logger.warning("[Webhook] charge.success without reference")
            return "missing_reference"

        return await self._process_charge(str(reference))

    async def _process_charge(self, reference: str) -> str:
        # The event body is only a hint; act on what Paystack reports now
        try:
            body = await self.paystack.verify_transaction(reference)
        except UpstreamError as e:
            logger.error(f"[Webhook] Re-verification of {reference} failed: {e.details}")
            return "verify_failed"

        data = body.get("data") or {}
        if not body.get("status") or data.get("status") != "success":
            logger.warning(f"[Webhook] {reference} not successful on re-verification")
            return "verify_failed"
        data.setdefault("reference", reference)

        if await self.fulfillment.already_completed(reference):
            logger.info(f"[Webhook] {reference} already fulfilled, duplicate delivery")
            return "duplicate"

        if not await self.store.is_service_active():
            logger.warning(f"[Webhook] Service inactive, not provisioning {reference}")
            await self.store.store(data, None, SERVICE_INACTIVE_REASON)
            marked = await self.store.mark_failed(reference, SERVICE_INACTIVE_REASON)
            if not marked:
                logger.error(f"[Webhook] Could not mark {reference} failed: {marked.reason}")
            return "service_inactive"

        order = self.fulfillment.order_for(data)
        if order is None:
            return "no_order"

        result = await self.fulfillment.fulfill(data, order)
        return "processed" if result.completed else "pending_manual_processing"
