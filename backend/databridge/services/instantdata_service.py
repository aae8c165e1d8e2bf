"""
InstantData Service

Client for the data-bundle provisioning vendor. Two calls share one
endpoint:
- place_order: real order {network, phone_number, data_amount}
- check_capacity: dry run with check_only=true before taking payment

Neither raises. Every failure comes back as a VendorResult with
success=False and an error message, because post-payment callers must
record failures rather than abort.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..models.transactions import ProviderInfo
from .balance_parser import BALANCE_FIELDS

logger = logging.getLogger(__name__)


@dataclass
class VendorResult:
    """Outcome of one InstantData call."""
    success: bool
    reachable: bool
    body: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def order_info(self) -> Dict[str, Any]:
        """Top-level fields overlaid with the `data` envelope when present."""
        if not isinstance(self.body, dict):
            return {}
        envelope = self.body.get("data")
        if isinstance(envelope, dict):
            return {**self.body, **envelope}
        return dict(self.body)

    def to_provider_info(self) -> ProviderInfo:
        info = self.order_info
        balance = next((info[f] for f in BALANCE_FIELDS if info.get(f)), None)
        return ProviderInfo(
            success=self.success,
            status=_as_str(info.get("status")) if self.reachable else "unreachable",
            order_id=_as_str(info.get("order_id")),
            remaining_balance=_as_str(balance),
            expected_delivery=_as_str(info.get("expected_delivery")),
            note=_as_str(info.get("note")),
            message=_as_str(info.get("message")) or self.error,
            responded_at=datetime.now(timezone.utc).isoformat(),
        )


def _as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return fallback


class InstantDataService:
    """
    InstantData REST client with api-key header auth.

    Timeouts: orders wait up to order_timeout seconds, capacity checks
    up to check_timeout. There are no retries.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        api_url: Optional[str],
        order_timeout: float = 15.0,
        check_timeout: float = 10.0
    ):
        self.http = http
        self.api_key = api_key
        self.api_url = api_url
        self.order_timeout = order_timeout
        self.check_timeout = check_timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_url)

    async def _post(self, payload: Dict[str, Any], timeout: float, require_success_flag: bool) -> VendorResult:
        if not self.configured:
            return VendorResult(success=False, reachable=False, error="InstantData API not configured")

        try:
            response = await self.http.post(
                self.api_url,
                json=payload,
                headers={"api-key": self.api_key, "Content-Type": "application/json"},
                timeout=timeout
            )
        except httpx.HTTPError as e:
            message = str(e) or type(e).__name__
            logger.error(f"InstantData transport error: {message}")
            return VendorResult(success=False, reachable=False, error=message)

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400:
            message = _error_message(body, f"HTTP {response.status_code}")
            logger.error(f"InstantData HTTP {response.status_code}: {body}")
            return VendorResult(False, True, body, message, response.status_code)

        if not isinstance(body, dict):
            return VendorResult(False, True, None, "Unexpected InstantData response", response.status_code)

        rejected = body.get("status") == "error" or body.get("success") is False
        if require_success_flag:
            rejected = rejected or not body.get("success")
        if rejected:
            message = _error_message(body, "Unknown error")
            logger.warning(f"InstantData rejected request: {message}")
            return VendorResult(False, True, body, message, response.status_code)

        return VendorResult(True, True, body, None, response.status_code)

    async def place_order(self, network: str, phone_number: str, data_amount: Any) -> VendorResult:
        logger.info(f"InstantData order: network={network}, phone={phone_number}, data_amount={data_amount}")
        result = await self._post(
            {"network": network, "phone_number": phone_number, "data_amount": data_amount},
            timeout=self.order_timeout,
            require_success_flag=False
        )
        if result.success:
            logger.info(f"InstantData order accepted: order_id={result.order_info.get('order_id')}")
        return result

    async def check_capacity(self, network: str, data_amount: Any) -> VendorResult:
        """Dry-run order; the vendor must answer success=true for it to pass."""
        logger.info(f"InstantData capacity check: network={network}, data_amount={data_amount}")
        return await self._post(
            {"network": network, "data_amount": data_amount, "check_only": True},
            timeout=self.check_timeout,
            require_success_flag=True
        )
