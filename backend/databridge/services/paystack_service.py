"""
Paystack Service

Thin client for the two Paystack endpoints the bridge uses:
- POST /transaction/initialize (start a checkout session)
- GET  /transaction/verify/{reference}

Both return Paystack's JSON envelope {status, message, data} untouched so
each handler can apply its own acceptance rules. Transport failures and
non-2xx replies raise UpstreamError carrying whatever body Paystack sent.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


class PaystackService:
    """
    Paystack REST client with bearer auth.

    The shared httpx.AsyncClient is owned by the application context.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        secret_key: Optional[str],
        public_key: Optional[str],
        base_url: str = "https://api.paystack.co"
    ):
        self.http = http
        self.secret_key = secret_key
        self.public_key = public_key
        self.base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Paystack {method} {path} transport error: {e}")
            raise UpstreamError("Paystack unreachable", str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400:
            logger.warning(f"Paystack {method} {path} returned HTTP {response.status_code}: {body}")
            raise UpstreamError(
                f"Paystack returned HTTP {response.status_code}",
                body,
                status_code=500
            )

        if not isinstance(body, dict):
            raise UpstreamError("Unexpected Paystack response", body)
        return body

    async def initialize_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a checkout session.

        Args:
            payload: {email, amount, currency, callback_url?, metadata?, channels}

        Returns:
            Paystack envelope; data carries reference, access_code, authorization_url
        """
        logger.info(f"Paystack initialize: email={payload.get('email')}, amount={payload.get('amount')}")
        return await self._send("POST", "/transaction/initialize", json=payload)

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Look up a transaction by reference; data.status is "success" once paid."""
        logger.info(f"Paystack verify: reference={reference}")
        return await self._send("GET", f"/transaction/verify/{quote(reference, safe='')}")
