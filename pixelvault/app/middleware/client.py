"""Client identification shared by the rate limiters and the access guard."""

import hashlib

from fastapi import Request


def get_client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Return the caller's address.

    X-Forwarded-For is only honoured when the service runs behind a trusted
    proxy; otherwise any client could pick its own identity.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_client_id(request: Request) -> str:
    """Get the per-client key used for lockout and rate limit state.

    The address is hashed so raw IPs never sit in memory, Redis or logs.
    Uses 32 hex chars (128 bits) for collision resistance.
    """
    cached = getattr(request.state, "client_id", None)
    if cached:
        return cached

    app_settings = getattr(request.app.state, "settings", None)
    trust = bool(app_settings and app_settings.trust_forwarded_for)
    client_ip = get_client_ip(request, trust_forwarded_for=trust)
    client_id = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    request.state.client_id = client_id
    return client_id
