"""
Request correlation.

Every request gets an id: the caller's X-Request-Id when it is well formed,
otherwise a fresh uuid4. The id is bound to the logging context for the
duration of the request, echoed on the response and carried into error
payloads, so a user quoting it to support can be matched to the verify and
fulfillment logs of their payment.
"""
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from payflow.core.logging import latency_bucket_ms, log_event, request_id_ctx_var

# Ids are echoed into headers and logs; anything else is replaced
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming):
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id to each request and log its completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers[self.header_name] = rid
        log_event(
            "info",
            "request.complete",
            request_id=rid,
            event_type="http",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
            },
        )
        return response
