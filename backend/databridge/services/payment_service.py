"""
Payment Service

Request-level logic behind the Paystack endpoints:
- initialize_payment: validate, dry-run the vendor, open a Paystack session
- verify_payment: confirm a redirect-returned payment and fulfil it
- check_balance: tell the shop whether an order can be fulfilled right now

Everything before payment capture raises a BridgeError so no money moves
on bad input. Everything after capture is handed to FulfillmentService,
which records failures instead of raising.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from ..exceptions import (
    ConfigurationError,
    RequestValidationFailed,
    UpstreamError,
)
from ..models.transactions import CheckBalanceRequest, InitializeRequest
from .balance_parser import is_balance_sufficient
from .fulfillment_service import FulfillmentService
from .instantdata_service import InstantDataService
from .paystack_service import PaystackService
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)


def _parse_amount(raw: Any) -> float:
    """Numeric value of amount, NaN when it is not a number."""
    if isinstance(raw, bool):
        return math.nan
    try:
        return float(raw)
    except (TypeError, ValueError):
        return math.nan


class PaymentService:
    """Initialize, verify and capacity-check payments."""

    def __init__(
        self,
        paystack: PaystackService,
        vendor: InstantDataService,
        store: TransactionStore,
        fulfillment: FulfillmentService,
        currency: str = "GHS",
        default_channels: Optional[List[str]] = None
    ):
        self.paystack = paystack
        self.vendor = vendor
        self.store = store
        self.fulfillment = fulfillment
        self.currency = currency
        self.default_channels = default_channels or ["mobile_money", "ussd"]

    # ========================================================================
    # Initialize
    # ========================================================================

    async def initialize_payment(self, request: InitializeRequest) -> Dict[str, Any]:
        """
        Start a Paystack checkout session.

        Returns:
            {success, reference, access_code, authorization_url, publicKey}

        Raises:
            RequestValidationFailed: bad email/amount, or vendor cannot fulfil
            ConfigurationError: missing Paystack or InstantData credentials
            UpstreamError: Paystack refused or was unreachable
        """
        if request.email in (None, "") or request.amount in (None, ""):
            raise RequestValidationFailed("Missing email or amount")

        email = str(request.email).strip().lower()
        amount = _parse_amount(request.amount)
        if "@" not in email or not math.isfinite(amount) or amount <= 0:
            raise RequestValidationFailed("Invalid email or amount")

        metadata = request.metadata
        if metadata and metadata.get("network") and metadata.get("data_amount"):
            await self._ensure_capacity(metadata["network"], metadata["data_amount"])

        if not self.paystack.configured:
            raise ConfigurationError("Server not configured with Paystack secret key")

        payload: Dict[str, Any] = {
            "email": email,
            "amount": round(amount),  # already in pesewas
            "currency": self.currency,
        }
        if request.callback_url:
            payload["callback_url"] = str(request.callback_url)
        if metadata:
            payload["metadata"] = metadata
        payload["channels"] = request.channels if request.channels else list(self.default_channels)

        try:
            body = await self.paystack.initialize_transaction(payload)
        except UpstreamError as e:
            raise UpstreamError("Initialize error", e.details) from e

        if not body.get("status"):
            raise UpstreamError("Paystack init failed", body)

        data = body.get("data") or {}
        logger.info(
            f"[Initialize] Paystack session created: reference={data.get('reference')}, "
            f"has_url={bool(data.get('authorization_url'))}"
        )

        return {
            "success": True,
            "reference": data.get("reference"),
            "access_code": data.get("access_code"),
            "authorization_url": data.get("authorization_url"),
            "publicKey": self.paystack.public_key,
        }

    async def _ensure_capacity(self, network: str, data_amount: Any) -> None:
        """Dry-run the vendor so we never take money for an order it cannot fill."""
        if not self.vendor.configured:
            raise ConfigurationError("InstantData API not configured")

        check = await self.vendor.check_capacity(network, data_amount)
        if check.success:
            return

        if not check.reachable:
            raise RequestValidationFailed(
                f"Cannot verify balance: {check.error or 'Service unavailable'}"
            )
        raise RequestValidationFailed(
            f"Insufficient balance for {network}: {check.error or 'Unknown error'}",
            check.body
        )

    # ========================================================================
    # Verify
    # ========================================================================

    async def verify_payment(self, reference: Optional[str]) -> Dict[str, Any]:
        """
        Confirm a payment with Paystack and fulfil its order.

        A vendor failure still answers success=true (the customer has paid)
        with order status pending_manual_processing and the vendor's error.

        Raises:
            RequestValidationFailed: missing reference
            UpstreamError: Paystack verification failed or payment not successful
        """
        if not reference:
            raise RequestValidationFailed("Missing reference")

        if not self.paystack.configured:
            raise ConfigurationError("Server not configured with Paystack secret key")

        try:
            body = await self.paystack.verify_transaction(reference)
        except UpstreamError as e:
            raise UpstreamError("Verify exception", e.details) from e

        if not body.get("status"):
            raise UpstreamError("Verification failed", body, status_code=400)

        data = body.get("data") or {}
        if data.get("status") != "success":
            logger.info(f"[Verify] Transaction {reference} not successful: status={data.get('status')}")
            raise UpstreamError("Transaction not successful", data, status_code=400)

        data.setdefault("reference", reference)
        response: Dict[str, Any] = {"success": True, "paystack": data, "order": None}

        order = self.fulfillment.order_for(data)
        if order is None:
            return response

        existing = await self.fulfillment.already_completed(data["reference"])
        if existing:
            provider = existing.get("provider") or {}
            logger.info(f"[Verify] Transaction {reference} already fulfilled, skipping vendor call")
            response["order"] = {"order_id": provider.get("order_id"), "status": provider.get("status")}
            return response

        result = await self.fulfillment.fulfill(data, order)
        response["order"] = result.order_summary()
        if not result.completed:
            response["message"] = "Payment received; data delivery pending manual processing"
            response["dataApiError"] = result.error_detail
        return response

    # ========================================================================
    # Check balance
    # ========================================================================

    async def check_balance(self, request: CheckBalanceRequest) -> Dict[str, Any]:
        """
        Can an order for (network, data_amount) be fulfilled right now?

        Uses the stored balance and pricing table; no vendor call is made.
        """
        logger.info(f"[CheckBalance] Request: network={request.network}, data_amount={request.data_amount}")

        if not self.vendor.configured:
            logger.warning("[CheckBalance] API key not configured")
            return {"success": True, "hasBalance": False, "message": "Service configuration error"}

        if not request.network or request.data_amount in (None, ""):
            raise RequestValidationFailed("Missing network or data_amount")

        if not await self.store.is_service_active():
            return {"success": True, "hasBalance": False, "message": "Service temporarily unavailable"}

        pricing = await self.store.get_pricing(request.network, request.data_amount)
        if pricing is not None:
            balance = await self.store.get_balance()
            if not is_balance_sufficient(balance, pricing["price"]):
                logger.warning(
                    f"[CheckBalance] Balance GH₵{balance:.2f} below price GH₵{pricing['price']:.2f}"
                )
                return {"success": True, "hasBalance": False, "message": "Insufficient balance"}

        return {"success": True, "hasBalance": True, "message": "Balance available"}
