"""
Pytest configuration and fixtures.

Outbound HTTP (Paystack, InstantData, SendGrid) is served by an
httpx.MockTransport backed by FakeUpstreams; the document store is a
throwaway SQLite file.
"""
import json
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from databridge.config import Settings
from databridge.context import AppContext
from databridge.main import create_app
from databridge.services.signature_service import compute_webhook_signature

PAYSTACK_HOST = "paystack.test"
INSTANTDATA_HOST = "instantdata.test"
SENDGRID_HOST = "sendgrid.test"

PAYSTACK_SECRET = "sk_test_fake_secret"
PAYSTACK_PUBLIC = "pk_test_fake_public"


def paystack_transaction(
    reference: str = "ref_123",
    status: str = "success",
    metadata: Optional[Dict[str, Any]] = None,
    amount: int = 1250
) -> Dict[str, Any]:
    """Paystack verify envelope for one transaction."""
    if metadata is None:
        metadata = {"network": "MTN", "phone_number": "0241234567", "data_amount": "5"}
    return {
        "status": True,
        "message": "Verification successful",
        "data": {
            "reference": reference,
            "status": status,
            "amount": amount,
            "currency": "GHS",
            "paid_at": "2025-10-17T14:35:00.000Z",
            "channel": "mobile_money",
            "gateway_response": "Approved",
            "customer": {"email": "buyer@example.com", "phone": None},
            "metadata": metadata,
        },
    }


def vendor_order_success(order_id: str = "ORD-1", balance: str = "GH₵95.50") -> Dict[str, Any]:
    return {
        "success": True,
        "status": "success",
        "data": {
            "order_id": order_id,
            "status": "processing",
            "remaining_balance": balance,
            "expected_delivery": "5-30 minutes",
            "note": "Bundle will arrive shortly",
        },
    }


def signed(payload: Dict[str, Any], secret: str = PAYSTACK_SECRET) -> Tuple[bytes, str]:
    raw = json.dumps(payload).encode("utf-8")
    return raw, compute_webhook_signature(raw, secret)


class FakeUpstreams:
    """
    Scriptable stand-in for the three external HTTP APIs.

    Every request is recorded; responses are (status_code, json_body).
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.verify_responses: Dict[str, Tuple[int, Any]] = {}
        self.initialize_response: Tuple[int, Any] = (200, {
            "status": True,
            "message": "Authorization URL created",
            "data": {
                "reference": "ref_new",
                "access_code": "acc_123",
                "authorization_url": "https://checkout.paystack.com/acc_123",
            },
        })
        self.order_response: Tuple[int, Any] = (200, vendor_order_success())
        self.check_response: Tuple[int, Any] = (200, {"success": True, "status": "success"})
        self.vendor_unreachable = False
        self.sendgrid_status = 202

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if host == PAYSTACK_HOST:
            if path.startswith("/transaction/verify/"):
                reference = path.rsplit("/", 1)[-1]
                status_code, body = self.verify_responses.get(
                    reference, (404, {"status": False, "message": "Transaction reference not found"})
                )
                return httpx.Response(status_code, json=body)
            if path == "/transaction/initialize":
                status_code, body = self.initialize_response
                return httpx.Response(status_code, json=body)

        if host == INSTANTDATA_HOST:
            if self.vendor_unreachable:
                raise httpx.ConnectError("connection refused", request=request)
            payload = json.loads(request.content)
            status_code, body = self.check_response if payload.get("check_only") else self.order_response
            return httpx.Response(status_code, json=body)

        if host == SENDGRID_HOST:
            return httpx.Response(self.sendgrid_status)

        return httpx.Response(599, json={"error": f"unexpected call to {request.url}"})

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def vendor_orders(self) -> List[Dict[str, Any]]:
        bodies = [json.loads(r.content) for r in self.calls_to(INSTANTDATA_HOST)]
        return [b for b in bodies if not b.get("check_only")]


@pytest.fixture
def upstreams() -> FakeUpstreams:
    return FakeUpstreams()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings."""
    return Settings(
        paystack_secret_key=PAYSTACK_SECRET,
        paystack_public_key=PAYSTACK_PUBLIC,
        paystack_base_url=f"https://{PAYSTACK_HOST}",
        instantdata_api_key="instantdata_test_key",
        instantdata_api_url=f"https://{INSTANTDATA_HOST}/api.php/orders",
        sendgrid_api_key="sg_test_key",
        sendgrid_from_email="shop@example.com",
        sendgrid_api_url=f"https://{SENDGRID_HOST}/v3/mail/send",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'databridge_test.db'}",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def context(test_settings: Settings, upstreams: FakeUpstreams) -> AsyncGenerator[AppContext, Any]:
    """Started application context wired to the fake upstreams."""
    ctx = AppContext(test_settings, transport=httpx.MockTransport(upstreams.handler))
    await ctx.start()
    yield ctx
    await ctx.close()


@pytest_asyncio.fixture
async def client(context: AppContext) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """HTTP client driving the ASGI app directly."""
    app = create_app(context=context)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
