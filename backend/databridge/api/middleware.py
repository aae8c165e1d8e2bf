"""
CORS Guard Middleware

Answers preflight requests and reflects CORS headers for allowed
origins. Unexpected errors from the app are rendered here as the
generic 500 so the browser can still read them.

Rejection of disallowed origins on real requests happens in the
require_allowed_origin dependency so the webhook stays reachable for
server-to-server callers.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from ..exceptions import OriginNotAllowedError, internal_error_body

logger = logging.getLogger(__name__)

# Paths that reflect any origin
OPEN_PATHS = {"/", "/ping"}


async def cors_guard(request: Request, call_next):
    guard = request.app.state.context.origin_guard
    origin = request.headers.get("origin")

    if request.url.path in OPEN_PATHS:
        decision = guard.reflect_any(origin)
    else:
        decision = guard.evaluate(origin, request.headers.get("referer"))
    request.state.origin_decision = decision

    if request.method == "OPTIONS":
        if not decision.allowed:
            return JSONResponse(status_code=403, content=OriginNotAllowedError(origin or "").to_dict())
        return Response(status_code=204, headers=decision.cors_headers())

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Unexpected error on {request.url.path}: {e}", exc_info=True)
        response = JSONResponse(status_code=500, content=internal_error_body())
    for header, value in decision.cors_headers().items():
        response.headers.setdefault(header, value)
    return response
