"""
Request Logging Middleware

Logs every HTTP request with method, path, status and duration, and scopes
a correlation ID to the request so structlog events emitted while handling
it (provider transitions, slow queries) carry the same ID.

Reference Documents:
- GUIDELINES: Sinha pp. 89-91 (FastAPI middleware patterns)
- ANTI_PATTERN_ANALYSIS: §3.1 No bare except clauses
"""

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from specificity.observability.logging import correlation_id_context

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Request-ID"


# =============================================================================
# Sensitive Header Redaction
# =============================================================================

# Matched case-insensitively as substrings of the header name
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "apikey",
    "api_key",
    "x-auth-token",
    "cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """
    Redact credentials from a headers dictionary before logging.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Dictionary with sensitive values replaced with [REDACTED]
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        is_sensitive = any(pattern in key_lower for pattern in SENSITIVE_HEADER_PATTERNS)
        redacted[key] = "[REDACTED]" if is_sensitive else value
    return redacted


# =============================================================================
# Request Logging Middleware
# =============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log HTTP requests and responses.

    The incoming X-Request-ID header is reused as the correlation ID when
    present; otherwise one is generated. The ID is echoed on the response.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        start_time = time.perf_counter()

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())

        logger.debug(
            f"Request: {method} {path} from {client_host} "
            f"headers={redact_sensitive_headers(dict(request.headers))}"
        )

        with correlation_id_context(correlation_id):
            try:
                response = await call_next(request)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"Request failed: {method} {path} from {client_host} "
                    f"error={type(e).__name__}: {e} duration={duration_ms:.2f}ms"
                )
                raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            f"{method} {path} {response.status_code} "
            f"from {client_host} duration={duration_ms:.2f}ms",
        )

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
