"""
Signature Service for Paystack Webhooks

Paystack signs each webhook with HMAC-SHA512 over the exact raw request
body, keyed with the account's secret key, hex-encoded in the
x-paystack-signature header.
"""
import hmac
import hashlib
from typing import Optional


SIGNATURE_HEADER = "x-paystack-signature"


def compute_webhook_signature(raw_body: bytes, secret_key: str) -> str:
    """
    Compute the expected signature for a webhook body.

    Args:
        raw_body: Request body bytes exactly as received (never re-serialized)
        secret_key: Paystack secret key

    Returns:
        Lowercase hex HMAC-SHA512 digest
    """
    return hmac.new(
        secret_key.encode("utf-8"),
        raw_body,
        hashlib.sha512
    ).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret_key: str) -> bool:
    """
    Check a webhook signature using constant-time comparison.

    Returns:
        True if signature matches, False if it differs or is missing
    """
    if not signature:
        return False

    expected = compute_webhook_signature(raw_body, secret_key).encode("ascii")
    received = signature.strip().lower().encode("utf-8", "replace")
    return hmac.compare_digest(expected, received)
