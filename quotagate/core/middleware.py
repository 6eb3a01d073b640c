"""Request ID propagation for log correlation.

Every request/response pair carries a correlation id: the incoming header
value when the client sends one, a fresh UUID otherwise. The id is held in a
contextvar for the duration of the request so rate limit logs (allowed,
exceeded, store failures) can be tied back to the request that caused them.

Usage:
    app.middleware("http")(
        partial(request_id_middleware, header_name=settings.log.request_id_header)
    )
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from quotagate.core.logging import clear_request_id, set_request_id


async def request_id_middleware(
    request: Request,
    call_next,
    *,
    header_name: str = "X-Request-ID",
) -> Response:
    """Attach a request id to the context and echo it on the response.

    Also reports the total handling time, rate limiting included, in the
    ``X-Request-Duration-ms`` header.
    """

    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
