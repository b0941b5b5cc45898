"""Per-request access log on the `tk.request` channel.

Assigns the request id before anything else runs, so error envelopes, the
X-Request-ID response header and the log line all agree. Server errors are
logged at WARNING so they stand out from normal traffic.

    INFO [POST] /api/v1/listings/L1/bids -> 200 (23ms) req_a1b2c3d4e5f6 ip=10.0.0.7
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.tk_gateway.middleware.rate_limit import client_ip

logger = logging.getLogger("tk.request")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s -> %d (%.0fms) %s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            client_ip(request),
        )
        return response
