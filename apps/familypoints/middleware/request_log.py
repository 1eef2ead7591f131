import logging
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

log = logging.getLogger("familypoints.http")

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "apikey",
    "x-api-key",
}

# Probes hit these every few seconds; keep them out of INFO.
QUIET_PREFIXES = ("/health",)


def _mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("***masked***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with an X-Request-ID echoed back to the caller."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        entry: Dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": int((time.time() - start_time) * 1000),
            "client": request.client.host if request.client else None,
            "headers": _mask_headers(dict(request.headers)),
        }

        if response.status_code >= 500:
            log.warning(entry)
        elif request.url.path.startswith(QUIET_PREFIXES):
            log.debug(entry)
        else:
            log.info(entry)
        return response
