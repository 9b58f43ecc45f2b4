"""Middleware package for PixelVault."""

from pixelvault.app.middleware.auth import require_access, resolve_credential
from pixelvault.app.middleware.client import get_client_id
from pixelvault.app.middleware.rate_limit import RateLimiter, rate_limit
from pixelvault.app.middleware.request_id import RequestIdMiddleware, get_request_id
from pixelvault.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "require_access",
    "resolve_credential",
    "get_client_id",
    "RateLimiter",
    "rate_limit",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestSizeLimitMiddleware",
]
