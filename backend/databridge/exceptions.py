"""
Databridge Exception Hierarchy

Errors raised before payment capture. Each maps to an HTTP status and
renders as {"success": false, "error_code", "message", "detail"}.
Anything after a confirmed payment is recorded instead of raised.
"""
from typing import Optional, Any


class BridgeError(Exception):
    """
    Base exception for request-level failures.

    The caller receives status_code with the to_dict() body.
    """

    status_code = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Any] = None,
        status_code: Optional[int] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert exception to API error response format."""
        body = {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details is not None:
            body["detail"] = self.details
        return body


class RequestValidationFailed(BridgeError):
    """
    Request body failed validation.

    Examples:
    - Missing email or amount
    - Amount zero, negative or not a number
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__("validation_error", message, details, status_code=400)


class OriginNotAllowedError(BridgeError):
    """Origin header not on the allow-list."""

    def __init__(self, origin: str):
        super().__init__(
            "origin_not_allowed",
            f"Origin not allowed: {origin}",
            status_code=403
        )


class RateLimitExceededError(BridgeError):
    """Client IP has no tokens left in its bucket."""

    def __init__(self, client_ip: str):
        super().__init__(
            "rate_limited",
            "Too many requests. Please try again later.",
            status_code=429
        )
        self.client_ip = client_ip


class SignatureInvalidError(BridgeError):
    """Webhook signature does not match HMAC-SHA512 of the raw body."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__("signature_invalid", message, status_code=400)


class ConfigurationError(BridgeError):
    """
    Server is missing a required credential.

    Examples:
    - No Paystack secret key in any variant
    - InstantData key or URL unset while an order needs a capacity check
    """

    def __init__(self, message: str):
        super().__init__("configuration_error", message, status_code=500)


class UpstreamError(BridgeError):
    """
    Paystack or InstantData refused the request or was unreachable.

    status_code is 400 when the upstream answered with a business
    rejection and 500 for transport failures and unexpected replies.
    """

    def __init__(self, message: str, details: Optional[Any] = None, status_code: int = 500):
        super().__init__("upstream_error", message, details, status_code=status_code)


def internal_error_body() -> dict:
    """Generic 500 body for unexpected errors; the traceback stays in the log."""
    return {
        "success": False,
        "error_code": "internal_error",
        "message": "An unexpected error occurred",
    }
