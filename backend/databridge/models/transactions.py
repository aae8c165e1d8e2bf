"""
Pydantic Transaction Models

Normalized transaction record stored per Paystack reference, plus the
request bodies accepted by the Paystack endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


TransactionStatus = Literal["completed", "failed", "pending_manual_processing"]


# ==================== Request Bodies ====================

class InitializeRequest(BaseModel):
    """
    Body of POST /paystack/initialize.

    Fields are loosely typed on purpose: amount arrives as a number or a
    numeric string and is validated by the payment service so that bad input
    yields the documented 400 messages.
    """
    email: Optional[Any] = None
    amount: Optional[Any] = None
    callback_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    channels: Optional[List[str]] = None


class VerifyRequest(BaseModel):
    """Body of POST /paystack/verify."""
    reference: Optional[str] = None


class CheckBalanceRequest(BaseModel):
    """Body of POST /paystack/check-balance."""
    network: Optional[str] = None
    data_amount: Optional[Any] = None


# ==================== Stored Record ====================

class PaymentInfo(BaseModel):
    amount: float = 0.0  # major unit (cedis)
    amount_minor: int = 0  # pesewas, as Paystack reports it
    currency: Optional[str] = None
    status: Optional[str] = None
    paid_at: Optional[str] = None
    channel: Optional[str] = None
    gateway_response: Optional[str] = None


class CustomerInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class OrderInfo(BaseModel):
    network: Optional[str] = None
    phone_number: Optional[str] = None
    data_amount: Optional[str] = None
    product: Optional[Any] = None


class ProviderInfo(BaseModel):
    """InstantData's answer to an order, flattened from its `data` envelope."""
    success: bool = False
    status: Optional[str] = None
    order_id: Optional[str] = None
    remaining_balance: Optional[str] = None
    expected_delivery: Optional[str] = None
    note: Optional[str] = None
    message: Optional[str] = None
    responded_at: Optional[str] = None


class TransactionRecord(BaseModel):
    """
    One document per Paystack reference.

    status is derived: completed when the vendor accepted the order,
    pending_manual_processing when payment succeeded but fulfilment did not,
    failed when an operator-level gate (kill switch) stopped it.
    """
    reference: str = Field(min_length=1)
    payment: PaymentInfo
    customer: CustomerInfo
    order: OrderInfo
    provider: Optional[ProviderInfo] = None
    error: Optional[str] = None
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime

    model_config = {
        "json_schema_extra": {
            "example": {
                "reference": "T123456789",
                "payment": {
                    "amount": 12.5,
                    "amount_minor": 1250,
                    "currency": "GHS",
                    "status": "success",
                    "paid_at": "2025-10-17T14:35:00.000Z",
                    "channel": "mobile_money",
                    "gateway_response": "Approved"
                },
                "customer": {"email": "buyer@example.com"},
                "order": {"network": "MTN", "phone_number": "0241234567", "data_amount": "5"},
                "provider": {"success": True, "status": "processing", "order_id": "ORD-991"},
                "error": None,
                "status": "completed",
                "created_at": "2025-10-17T14:35:01Z",
                "updated_at": "2025-10-17T14:35:01Z"
            }
        }
    }
