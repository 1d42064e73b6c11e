"""
API Middleware Package

This package contains middleware components for the Specificity API.

Middleware Components:
- logging: Request/response logging with header redaction
"""

from specificity.api.middleware.logging import RequestLoggingMiddleware, redact_sensitive_headers

__all__ = [
    "RequestLoggingMiddleware",
    "redact_sensitive_headers",
]
