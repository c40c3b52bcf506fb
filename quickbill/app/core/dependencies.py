"""
Request dependencies for FastAPI.

Turns the bearer token and request metadata into the explicit
RequestContext the payment core works with.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from quickbill.app.core.context import Actor, Clock, RequestContext, SystemClock
from quickbill.app.core.exceptions import AuthenticationError
from quickbill.app.core.jwt import decode_access_token
from quickbill.app.models.enums import UserRole

# HTTP Bearer security scheme; missing headers are reported as 401 below
security = HTTPBearer(auto_error=False)

_system_clock = SystemClock()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """
    Authenticate the caller from a JWT bearer token.

    Raises:
        AuthenticationError: Missing, invalid or expired token, or a payload
            without user_id / a known role.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise AuthenticationError("Invalid role in token")

    return Actor(user_id=user_id, username=payload.get("sub") or str(user_id), role=role)


def get_clock() -> Clock:
    """Clock used for payment dates and references. Overridden in tests."""
    return _system_clock


async def get_request_context(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    clock: Clock = Depends(get_clock)
) -> RequestContext:
    correlation_id = getattr(request.state, "correlation_id", None)
    context = RequestContext(
        actor=actor,
        clock=clock,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    if correlation_id:
        context.correlation_id = correlation_id
    return context
