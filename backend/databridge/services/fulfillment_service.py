"""
Fulfillment Service

The post-payment sequence shared by the verify endpoint and the webhook:

    InstantData order -> store transaction -> email customer + operator
                      -> persist remaining balance

Runs only after Paystack has confirmed the payment, so nothing here
raises: a vendor failure becomes a pending_manual_processing record and a
failure email, and store/email failures are logged and skipped.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models.outcome import Outcome
from ..models.transactions import ProviderInfo, TransactionRecord
from .balance_parser import extract_balance
from .instantdata_service import InstantDataService
from .notification_service import NotificationDispatcher
from .transaction_store import TransactionStore, build_transaction_record

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentResult:
    """What happened to one paid order."""
    status: str  # "completed" or "pending_manual_processing"
    provider: ProviderInfo
    error: Optional[str] = None
    error_detail: Any = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def order_summary(self) -> Dict[str, Any]:
        if self.completed:
            return {"order_id": self.provider.order_id, "status": self.provider.status}
        return {"status": "pending_manual_processing"}


def provisionable_order(
    paystack_data: Dict[str, Any],
    supported_networks: List[str]
) -> Optional[Dict[str, Any]]:
    """
    Order details from Paystack metadata, if they describe something we can provision.

    Returns:
        {network, phone_number, data_amount} or None when a field is missing
        or the network is not supported
    """
    metadata = paystack_data.get("metadata") or {}
    if not isinstance(metadata, dict):
        return None

    network = metadata.get("network")
    phone_number = metadata.get("phone_number")
    data_amount = metadata.get("data_amount")
    if not (network and phone_number and data_amount):
        return None

    supported = {n.upper() for n in supported_networks}
    if str(network).upper() not in supported:
        logger.warning(f"Unsupported network in metadata: {network}")
        return None

    return {"network": network, "phone_number": phone_number, "data_amount": data_amount}


def _log_if_failed(what: str, reference: str, outcome: Outcome) -> None:
    if not outcome:
        logger.warning(f"{what} failed for {reference}: {outcome.reason}")


def _fallback_record(
    paystack_data: Dict[str, Any],
    provider: ProviderInfo,
    error: Optional[str]
) -> Optional[TransactionRecord]:
    """Record for the emails when the store write failed; None if it cannot be built."""
    try:
        return build_transaction_record(paystack_data, provider, error)
    except ValueError as e:
        logger.error(f"Cannot build transaction record for notifications: {e}")
        return None


class FulfillmentService:
    """Provision, record and notify for a confirmed payment."""

    def __init__(
        self,
        store: TransactionStore,
        vendor: InstantDataService,
        notifier: NotificationDispatcher,
        supported_networks: List[str]
    ):
        self.store = store
        self.vendor = vendor
        self.notifier = notifier
        self.supported_networks = supported_networks

    def order_for(self, paystack_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return provisionable_order(paystack_data, self.supported_networks)

    async def already_completed(self, reference: str) -> Optional[Dict[str, Any]]:
        """Stored document for reference if it has already been fulfilled."""
        existing = await self.store.get_transaction(reference)
        if existing and existing.get("status") == "completed":
            return existing
        return None

    async def fulfill(self, paystack_data: Dict[str, Any], order: Dict[str, Any]) -> FulfillmentResult:
        """
        Place the InstantData order for a verified payment and record the outcome.

        Args:
            paystack_data: `data` object from Paystack verify
            order: Output of provisionable_order()

        Returns:
            FulfillmentResult; never raises for vendor, store or email failures
        """
        reference = str(paystack_data.get("reference") or "")
        balance_before = await self.store.get_balance()

        result = await self.vendor.place_order(order["network"], order["phone_number"], order["data_amount"])
        provider = result.to_provider_info()
        error = None if result.success else (result.error or "Data API call failed")

        stored = await self.store.store(paystack_data, provider, error)
        _log_if_failed("Transaction store", reference, stored)

        record = stored.value if stored else _fallback_record(paystack_data, provider, error)
        if record is not None:
            _log_if_failed(
                "Customer email", reference,
                await self.notifier.notify_customer(record.customer.email, record, provider, error)
            )
            _log_if_failed(
                "Operator email", reference,
                await self.notifier.notify_operator(record, provider, error)
            )

        if not result.success:
            logger.error(f"Payment {reference} succeeded but provisioning failed: {error}")
            return FulfillmentResult(
                status="pending_manual_processing",
                provider=provider,
                error=error,
                error_detail=result.body if result.body is not None else error
            )

        new_balance = extract_balance(result.order_info)
        if new_balance is not None:
            _log_if_failed("Balance update", reference, await self.store.set_balance(new_balance))
            if stored:
                cost = round(balance_before - new_balance, 2) if balance_before else None
                _log_if_failed(
                    "Balance audit", reference,
                    await self.store.record_balance(reference, balance_before, new_balance, provider.order_id, cost)
                )

        logger.info(f"Payment {reference} fulfilled: order_id={provider.order_id}")
        return FulfillmentResult(status="completed", provider=provider)
