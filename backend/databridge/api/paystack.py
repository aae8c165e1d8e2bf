"""
Paystack API Endpoints

POST /paystack/initialize     start a checkout session
POST /paystack/verify         confirm a payment after redirect and fulfil it
POST /paystack/webhook        Paystack-signed charge events
POST /paystack/check-balance  can an order be fulfilled right now
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from ..context import AppContext
from ..models.transactions import CheckBalanceRequest, InitializeRequest, VerifyRequest
from ..services.signature_service import SIGNATURE_HEADER
from .deps import enforce_rate_limit, get_context, require_allowed_origin

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/initialize",
    dependencies=[Depends(enforce_rate_limit), Depends(require_allowed_origin)]
)
async def initialize_endpoint(
    payload: Optional[InitializeRequest] = None,
    context: AppContext = Depends(get_context)
) -> Dict[str, Any]:
    """
    Start a Paystack payment.

    Request Body:
        {
            "email": str,
            "amount": int,  # pesewas
            "callback_url": str,  # optional
            "metadata": {"network", "phone_number", "data_amount", ...},  # optional
            "channels": List[str]  # optional, default mobile_money + ussd
        }

    Returns:
        {"success": true, "reference", "access_code", "authorization_url", "publicKey"}
    """
    return await context.payments.initialize_payment(payload or InitializeRequest())


@router.post(
    "/verify",
    dependencies=[Depends(enforce_rate_limit), Depends(require_allowed_origin)]
)
async def verify_endpoint(
    payload: Optional[VerifyRequest] = None,
    context: AppContext = Depends(get_context)
) -> Dict[str, Any]:
    """
    Verify a payment by reference and provision its data bundle.

    Returns:
        {"success": true, "paystack": {...}, "order": {"order_id", "status"} | null}

        When the vendor fails after payment, order.status is
        "pending_manual_processing" and dataApiError carries the vendor error.
    """
    reference = payload.reference if payload else None
    return await context.payments.verify_payment(reference)


@router.post("/webhook")
async def webhook_endpoint(
    request: Request,
    context: AppContext = Depends(get_context)
) -> Dict[str, Any]:
    """
    Receive a Paystack event.

    The body is read raw; the signature covers the exact bytes sent.
    """
    raw_body = await request.body()
    return await context.webhooks.handle(raw_body, request.headers.get(SIGNATURE_HEADER))


@router.post("/check-balance", dependencies=[Depends(require_allowed_origin)])
async def check_balance_endpoint(
    payload: Optional[CheckBalanceRequest] = None,
    context: AppContext = Depends(get_context)
) -> Dict[str, Any]:
    """
    Check provisioning capacity for a package.

    Request Body:
        {"network": str, "data_amount": str}

    Returns:
        {"success": true, "hasBalance": bool, "message": str}
    """
    return await context.payments.check_balance(payload or CheckBalanceRequest())
