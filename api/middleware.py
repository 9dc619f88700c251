"""Request logging and storefront CORS middleware.

RequestLoggingMiddleware tags every request with a short correlation id
(returned as X-Request-ID) and logs method, path, status and duration.

ExternalCorsMiddleware opens the /api/external surface to any storefront
origin; the API key, not the origin, is what authenticates those calls.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("api.requests")

EXTERNAL_PREFIX = "/api/external"
_SKIP_LOGGING = ("/health",)


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in _SKIP_LOGGING:
            logger.info(
                "[%s] %s %s -> %d (%.1fms)",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        return response


# ---------------------------------------------------------------------------
# External CORS
# ---------------------------------------------------------------------------

def cors_headers(origin: str | None) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }


class ExternalCorsMiddleware(BaseHTTPMiddleware):
    """CORS for /api/external/*, including error responses.

    Preflight ``OPTIONS`` requests are answered here with 200 ``{}``.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(EXTERNAL_PREFIX):
            return await call_next(request)

        headers = cors_headers(request.headers.get("origin"))
        if request.method == "OPTIONS":
            return JSONResponse({}, status_code=200, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
