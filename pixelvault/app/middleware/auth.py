"""Shared-secret access control for the image endpoints.

The credential may arrive in the ``X-Upload-Password`` header, a
``password`` form field or a ``password`` query parameter; the first one
present wins, in that order. The resolved string is handed to the
application's AccessGuard, which owns lockout state.
"""

from typing import Optional

from fastapi import Request

from pixelvault.app.core.logging import get_log_context, get_logger
from pixelvault.app.exceptions import InvalidCredentialError, LockedError
from pixelvault.app.middleware.client import get_client_id
from pixelvault.app.middleware.request_id import get_request_id
from pixelvault.app.services.access_guard import AccessDecision, AccessGuard

logger = get_logger(__name__)

PASSWORD_HEADER = "X-Upload-Password"
PASSWORD_FIELD = "password"


def resolve_credential(request: Request, form_value: Optional[str] = None) -> Optional[str]:
    """Pick the credential by precedence: header, form field, query parameter.

    Args:
        request: The incoming request
        form_value: The ``password`` form field, if the route parsed a form

    Returns:
        The credential string, or None if none was supplied
    """
    header_value = request.headers.get(PASSWORD_HEADER)
    if header_value is not None:
        return header_value
    if form_value is not None:
        return form_value
    return request.query_params.get(PASSWORD_FIELD)


async def require_access(request: Request, form_value: Optional[str] = None) -> str:
    """Verify the request's credential through the application's AccessGuard.

    Returns:
        The client identifier that was granted access

    Raises:
        LockedError: 423 if the client is locked out
        InvalidCredentialError: 401 if the credential is missing or wrong
    """
    guard: AccessGuard = request.app.state.access_guard
    expected = request.app.state.settings.upload_password
    client_id = get_client_id(request)

    credential = resolve_credential(request, form_value)
    decision = await guard.verify(client_id, credential, expected)

    if decision is AccessDecision.BLOCKED:
        raise LockedError(retry_after=guard.retry_after(client_id) or 1)

    if decision is AccessDecision.DENIED:
        remaining = guard.remaining_attempts(client_id)
        logger.info(
            "Rejected request with invalid credential",
            extra=get_log_context(
                request_id=get_request_id(request),
                client_id=client_id,
                remaining_attempts=remaining,
            ),
        )
        raise InvalidCredentialError(remaining_attempts=remaining)

    return client_id
