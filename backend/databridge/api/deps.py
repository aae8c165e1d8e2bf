"""
FastAPI Dependencies

Hands the application context to routes and runs the admission checks
(rate limit, then origin) ahead of guarded handlers.
"""
import logging

from fastapi import Depends, Request

from ..context import AppContext
from ..exceptions import OriginNotAllowedError, RateLimitExceededError
from ..services.guard_service import client_ip_from

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def enforce_rate_limit(request: Request, context: AppContext = Depends(get_context)) -> None:
    """Charge one token to the caller's IP or reject with 429."""
    client_ip = client_ip_from(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None
    )
    if not context.rate_limiter.allow(client_ip):
        raise RateLimitExceededError(client_ip)


def require_allowed_origin(request: Request, context: AppContext = Depends(get_context)) -> None:
    """Reject browsers calling from an origin outside the allow-list."""
    decision = getattr(request.state, "origin_decision", None)
    if decision is None:
        decision = context.origin_guard.evaluate(
            request.headers.get("origin"),
            request.headers.get("referer")
        )
    if not decision.allowed:
        raise OriginNotAllowedError(decision.origin or "")
