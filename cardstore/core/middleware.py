import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from cardstore.core.errors import ApiError, error_response

logger = logging.getLogger("cardstore.access")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Une ligne par requête : METHOD path status length - ms."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %s - %.3f ms",
            request.method,
            request.url.path,
            response.status_code,
            response.headers.get("content-length", "-"),
            elapsed_ms,
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Refuse les corps annoncés au-delà de la limite (413)."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            err = ApiError.payload_too_large()
            return error_response(err.status_code, err.code)
        return await call_next(request)
