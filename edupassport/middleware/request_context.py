"""Request context middleware: one request ID per request.

Registry warnings (a skipped record, a refused transition) are emitted
deep inside the service layer.  The ID lets you tie each of them back to
the HTTP call that triggered it:

  INFO     [req-abc] POST /v1/credentials/cred-1/verify → 403 (2.1ms)
  WARNING  [req-abc] Transition denied: 0xbbb... is not the owner of cred-1

The ID is kept in a ContextVar, not a thread-local: concurrent requests
share the event loop thread but each task sees its own value.

A client-supplied X-Request-ID is reused when it looks sane, so a
browser trace and the server log share one key.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Printable token, no spaces or control characters (log injection).
_VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


class _RequestContextFilter(logging.Filter):
    """Copies the current request ID onto every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get("x-request-id", "")
    if _VALID_REQUEST_ID.fullmatch(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns the request ID, times the request and logs one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _incoming_request_id(request)
        token = request_id_var.set(req_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
