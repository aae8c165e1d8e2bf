"""
Transaction Store

Persists normalized transaction documents and the InstantData config
document (balance + kill switch), and reads package pricing.

Every operation is best-effort: database errors are logged and returned
as a failed Outcome (or None/0/False for reads) so the payment flow that
called it can carry on. A store failure never undoes a paid order.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..db import Database, PackagePricingModel, SystemSettingModel, TransactionDocumentModel
from ..models.outcome import Outcome
from ..models.transactions import (
    CustomerInfo,
    OrderInfo,
    PaymentInfo,
    ProviderInfo,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

CONFIG_DOCUMENT_ID = "instantDataConfig"


# ============================================================================
# Record Building
# ============================================================================

def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge update into a copy of base.

    Nested dicts merge key by key; any other value in update (including
    None) replaces the base value. Keys only in base survive.
    """
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def derive_status(provider: Optional[ProviderInfo], error: Optional[str]) -> str:
    if error or provider is None or not provider.success:
        return "pending_manual_processing"
    return "completed"


def _text(value: Any) -> Optional[str]:
    """Scalar metadata as text; JSON numbers (phone numbers, amounts) included."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def build_transaction_record(
    paystack_data: Dict[str, Any],
    provider: Optional[ProviderInfo],
    error: Optional[str],
    now: Optional[datetime] = None
) -> TransactionRecord:
    """
    Normalize a verified Paystack transaction plus vendor outcome.

    Args:
        paystack_data: `data` object from Paystack verify
        provider: InstantData outcome, None if no order was attempted
        error: Fulfilment error text, None on success

    Returns:
        TransactionRecord ready to upsert
    """
    now = now or datetime.utcnow()
    metadata = paystack_data.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    customer = paystack_data.get("customer") or {}
    if not isinstance(customer, dict):
        customer = {}

    amount_minor = paystack_data.get("amount") or 0
    try:
        amount_minor = int(amount_minor)
    except (TypeError, ValueError):
        amount_minor = 0

    return TransactionRecord(
        reference=str(paystack_data.get("reference") or ""),
        payment=PaymentInfo(
            amount=amount_minor / 100,
            amount_minor=amount_minor,
            currency=_text(paystack_data.get("currency")),
            status=_text(paystack_data.get("status")),
            paid_at=_text(paystack_data.get("paid_at") or paystack_data.get("paidAt")),
            channel=_text(paystack_data.get("channel")),
            gateway_response=_text(paystack_data.get("gateway_response")),
        ),
        customer=CustomerInfo(
            email=_text(customer.get("email") or metadata.get("email")),
            phone=_text(customer.get("phone")),
            first_name=_text(customer.get("first_name")),
            last_name=_text(customer.get("last_name")),
        ),
        order=OrderInfo(
            network=_text(metadata.get("network")),
            phone_number=_text(metadata.get("phone_number")),
            data_amount=_text(metadata.get("data_amount")),
            product=_text(metadata.get("product") or metadata.get("product_name")),
        ),
        provider=provider,
        error=error,
        status=derive_status(provider, error),
        created_at=now,
        updated_at=now,
    )


# ============================================================================
# Store
# ============================================================================

class TransactionStore:
    """Document operations over the Database handle."""

    def __init__(self, database: Database):
        self.database = database

    async def store(
        self,
        paystack_data: Dict[str, Any],
        provider: Optional[ProviderInfo] = None,
        error: Optional[str] = None
    ) -> Outcome:
        """
        Upsert the transaction document keyed by Paystack reference.

        Existing documents are deep-merged: fields written here replace
        older values, fields written elsewhere (balance audit, manual
        notes) are kept. created_at is preserved from the first write.
        """
        try:
            record = build_transaction_record(paystack_data, provider, error)
        except ValueError as e:
            logger.error(f"[Store] Cannot build transaction record: {e}")
            return Outcome.failure(f"invalid transaction data: {e}")

        document = record.model_dump(mode="json")
        document.pop("created_at")

        try:
            async with self.database.session() as session:
                row = await session.get(TransactionDocumentModel, record.reference)
                if row is None:
                    document["created_at"] = record.created_at.isoformat()
                    row = TransactionDocumentModel(
                        reference=record.reference,
                        status=record.status,
                        data=document,
                        created_at=record.created_at,
                        updated_at=record.updated_at
                    )
                    session.add(row)
                else:
                    row.data = deep_merge(row.data or {}, document)
                    row.status = record.status
                    row.updated_at = record.updated_at
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to store transaction {record.reference}: {e}")
            return Outcome.failure(str(e))

        logger.info(f"[Store] Transaction {record.reference} stored with status={record.status}")
        return Outcome.success(record)

    async def get_transaction(self, reference: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.database.session() as session:
                row = await session.get(TransactionDocumentModel, reference)
                return dict(row.data) if row else None
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to read transaction {reference}: {e}")
            return None

    async def mark_failed(self, reference: str, reason: str) -> Outcome:
        """Set status=failed with reason on an existing transaction."""
        try:
            async with self.database.session() as session:
                row = await session.get(TransactionDocumentModel, reference)
                if row is None:
                    logger.warning(f"[Store] Cannot mark missing transaction {reference} as failed")
                    return Outcome.failure("transaction not found")
                now = datetime.utcnow()
                row.data = deep_merge(row.data or {}, {
                    "status": "failed",
                    "error": reason,
                    "updated_at": now.isoformat(),
                })
                row.status = "failed"
                row.updated_at = now
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to mark transaction {reference} failed: {e}")
            return Outcome.failure(str(e))

        logger.info(f"[Store] Transaction {reference} marked as failed: {reason}")
        return Outcome.success()

    async def record_balance(
        self,
        reference: str,
        balance_before: float,
        balance_after: float,
        order_id: Optional[str],
        cost: Optional[float] = None
    ) -> Outcome:
        """Attach balance audit fields to an existing transaction."""
        try:
            async with self.database.session() as session:
                row = await session.get(TransactionDocumentModel, reference)
                if row is None:
                    return Outcome.failure("transaction not found")
                now = datetime.utcnow()
                row.data = deep_merge(row.data or {}, {
                    "balance_before_order": balance_before,
                    "balance_after_order": balance_after,
                    "provider_cost": cost,
                    "provider": {"order_id": order_id},
                    "updated_at": now.isoformat(),
                })
                row.updated_at = now
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to record balance on {reference}: {e}")
            return Outcome.failure(str(e))
        return Outcome.success()

    # ------------------------------------------------------------------
    # Config document
    # ------------------------------------------------------------------

    async def _read_config(self) -> Optional[Dict[str, Any]]:
        async with self.database.session() as session:
            row = await session.get(SystemSettingModel, CONFIG_DOCUMENT_ID)
            return dict(row.data) if row else None

    async def get_balance(self) -> float:
        """Current InstantData balance, 0.0 when unknown."""
        try:
            config = await self._read_config()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to get balance: {e}")
            return 0.0

        if config is None:
            logger.warning("[Store] Config document not found, returning 0")
            return 0.0

        try:
            return float(config.get("currentBalance") or 0)
        except (TypeError, ValueError):
            return 0.0

    async def set_balance(self, value: float) -> Outcome:
        """Write currentBalance, creating the config document if needed."""
        now = datetime.utcnow()
        update = {"currentBalance": value, "lastUpdated": now.isoformat()}
        try:
            async with self.database.session() as session:
                row = await session.get(SystemSettingModel, CONFIG_DOCUMENT_ID)
                if row is None:
                    session.add(SystemSettingModel(id=CONFIG_DOCUMENT_ID, data=update, updated_at=now))
                else:
                    row.data = deep_merge(row.data or {}, update)
                    row.updated_at = now
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to update balance: {e}")
            return Outcome.failure(str(e))

        logger.info(f"[Store] Balance updated to GH₵{value:.2f}")
        return Outcome.success(value)

    async def is_service_active(self) -> bool:
        """
        Kill switch gating all provisioning spend.

        Fails closed: a missing config document or a read error means
        inactive. A document without the flag counts as active.
        """
        try:
            config = await self._read_config()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to check service status: {e}")
            return False

        if config is None:
            return False
        return config.get("isServiceActive") is not False

    async def get_pricing(self, network: str, data_amount: Any) -> Optional[Dict[str, Any]]:
        """Active pricing entry for (network, data_amount), or None."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(PackagePricingModel).where(
                        PackagePricingModel.network == network,
                        PackagePricingModel.data_amount == str(data_amount),
                        PackagePricingModel.is_active.is_(True),
                    )
                )
                entry = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"[Store] Failed to get pricing: {e}")
            return None

        if entry is None:
            logger.warning(f"[Store] No pricing found for {network} {data_amount}GB")
            return None

        return {
            "network": entry.network,
            "data_amount": entry.data_amount,
            "price": entry.price,
            "is_active": entry.is_active,
        }
