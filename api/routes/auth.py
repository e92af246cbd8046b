"""
api/routes/auth.py -- Session endpoints.

Routes:
  POST /api/auth/register  -- create organization + Admin; sets refresh cookie
  POST /api/auth/login     -- password login; sets refresh cookie
  POST /api/auth/refresh   -- new access token from the refresh cookie
  POST /api/auth/logout    -- clears the refresh cookie; always 200

The access token travels in the JSON body and then in Authorization headers.
The refresh token only ever travels in the refresh_token cookie (httpOnly,
path-scoped to /api/auth/refresh); it never appears in a response body.

Security:
  Register and login are rate-limited per client IP.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import LoginRequest, RegisterRequest, envelope
from auth.flow import AuthFlow, AuthResult
from auth.tokens import REFRESH_COOKIE_NAME, clear_refresh_cookie, set_refresh_cookie

# Auth policy: every route here is public -- they are how a caller obtains or
# drops credentials in the first place. /auth/refresh authenticates itself
# through the refresh cookie inside AuthFlow.refresh().
router = APIRouter()


def _session_response(request: Request, result: AuthResult, message: str) -> JSONResponse:
    resp = JSONResponse(
        content=envelope({"user": result.user_projection(), "token": result.access_token}, message),
    )
    set_refresh_cookie(resp, result.refresh_token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# @limiter.limit must sit below @router.post so the route serves the limited wrapper.
@router.post("/auth/register")
@limiter.limit(LOGIN_RATE_LIMIT)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new organization with its first Admin and start a session."""
    flow: AuthFlow = request.app.state.auth_flow
    result = flow.register(
        company_name=body.company_name,
        location=body.location,
        email=body.email,
        password=body.password,
        company_size=body.company_size,
        website=body.website,
        admin_name=body.admin_name,
    )
    return _session_response(request, result, "Registered successfully")


@router.post("/auth/login")
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 message; see
    auth/flow.py for the one deliberate exception.
    """
    flow: AuthFlow = request.app.state.auth_flow
    result = flow.login(body.email, body.password)
    return _session_response(request, result, "Logged in")


@router.post("/auth/refresh")
def refresh(request: Request) -> JSONResponse:
    """Issue a new access token. The refresh cookie is left untouched."""
    flow: AuthFlow = request.app.state.auth_flow
    token = flow.refresh(request.cookies.get(REFRESH_COOKIE_NAME))
    resp = JSONResponse(content={**envelope({"token": token}, "Token refreshed"), "token": token})
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
def logout() -> JSONResponse:
    """Clear the refresh cookie. Issued tokens stay valid until they expire."""
    resp = JSONResponse(content=envelope({"loggedOut": True}, "Logged out"))
    clear_refresh_cookie(resp)
    return resp
