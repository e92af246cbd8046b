"""
auth/dependencies.py -- FastAPI Depends() helpers for the session gate.

Per-request state machine:
  NoCredential -> (Authorization: Bearer present?) -> Verifying
               -> Authenticated | Rejected (401)

get_current_identity() verifies the access token and returns the caller's
Identity; nothing is looked up in the database and nothing is cached between
requests, so any worker can serve any request.

require_role(*roles) builds a dependency that runs get_current_identity()
first (authentication before authorization, always) and raises 403 if the
caller's access role is not in the allowed set.

Layer rule: may import fastapi (this module is part of the DI system) and
core/. No imports from api/, staffing/, or notify/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Identity
from auth.tokens import InvalidTokenError, TokenIssuer
from core.errors import ForbiddenError, UnauthenticatedError


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise UnauthenticatedError("Missing or invalid authorization header")
    return token.strip()


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Raises UnauthenticatedError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...

    The identity is also attached to request.state for middleware and logging.
    """
    token = _bearer_token(request)
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        claims = issuer.verify_access(token)
        identity = Identity(
            employee_id=int(claims["sub"]),
            access_role=claims["accessRole"],
            organization_id=int(claims["org"]),
        )
    except (InvalidTokenError, ValueError) as exc:
        raise UnauthenticatedError("Invalid or expired token") from exc
    request.state.identity = identity
    return identity


def require_role(*roles: str) -> Callable[..., Identity]:
    """Return a dependency that admits only callers whose access role is in roles.

    Use as a FastAPI dependency:
        @router.post("/employees")
        def route(identity: Identity = Depends(require_role("Admin", "Manager"))): ...
    """
    allowed = frozenset(roles)

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.access_role not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return identity

    return dependency
