import logging
import time
import uuid

from library_api.api.errors import unhandled_error_handler
from library_api.core.logging import correlation_id_var
from library_api.middleware.security_headers import apply_security_headers
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with a correlation id and logs its start and end."""

    async def dispatch(self, request, call_next):
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = req_id
        token = correlation_id_var.set(req_id)
        started = time.perf_counter()
        client = request.client.host if request.client else "-"

        logger.info("REQUEST_START %s %s ip=%s", request.method, request.url.path, client)
        try:
            response = await call_next(request)
        except Exception as exc:
            # The normalized 500 is built here so it carries the request id and security headers.
            response = apply_security_headers(request, await unhandled_error_handler(request, exc))

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-Id"] = req_id
        logger.info(
            "REQUEST_END %s %s status=%s duration_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        if response.status_code >= 400:
            user = getattr(request.state, "user", None)
            logger.log(
                logging.ERROR if response.status_code >= 500 else logging.WARNING,
                "API_ERROR %s %s status=%s user_id=%s ip=%s",
                request.method,
                request.url.path,
                response.status_code,
                getattr(user, "id", None),
                client,
            )
        correlation_id_var.reset(token)
        return response
