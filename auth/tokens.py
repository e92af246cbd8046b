"""
auth/tokens.py -- Password hashing, JWT session tokens, and the refresh cookie.

Security design decisions:
  JWT: python-jose with HS256. A session is two independent tokens:
       - access token: {sub, accessRole, org}, signed with JWT_ACCESS_SECRET,
         short-lived (15 min default), sent as a Bearer header on API calls.
       - refresh token: {sub, org}, signed with JWT_REFRESH_SECRET, long-lived
         (7 days default), only ever carried in an httpOnly cookie scoped to
         the refresh endpoint.
       Each token also carries a "type" claim so one can never be replayed as
       the other even if the secrets were misconfigured to be equal.
       Verification raises InvalidTokenError on any failure -- the auth flow
       and session dependency turn that into a 401.

  Passwords: bcrypt directly (no passlib wrapper), work factor 10 by default.
       _DUMMY_HASH enables timing equalization in AuthFlow.login() so response
       time does not reveal whether an email exists.

Layer rule: no imports from api/, staffing/, or notify/. Import from core/
is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from core.config import Settings

logger = logging.getLogger("workmesh.auth")

_ALGORITHM = "HS256"
_DEFAULT_ROUNDS = 10

REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/api/auth/refresh"


class InvalidTokenError(Exception):
    """Signature mismatch, expiry, wrong token type, or missing claims."""


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = _DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt refuses input longer than 72 bytes (UTF-8). The API models reject
    such passwords with a 400 before they reach this function.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Returns False, never raises, when no hash is stored or the stored value
    is not a bcrypt hash.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("workmesh_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run one bcrypt comparison against a dummy hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints and verifies the access/refresh token pair.

    Usage:
        issuer = TokenIssuer(get_settings())
        token = issuer.issue_access({"sub": "1", "accessRole": "Admin", "org": "1"})
        claims = issuer.verify_access(token)

    now is injectable and drives both issuing and the expiry check, so tests
    can move the clock across a token's lifetime without sleeping.
    """

    def __init__(self, settings: Settings, now: Callable[[], datetime] = _utcnow) -> None:
        self._access_secret = settings.jwt_access_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self.access_ttl = timedelta(seconds=settings.access_token_expire_seconds)
        self.refresh_ttl = timedelta(seconds=settings.refresh_token_expire_seconds)
        self._now = now

    def issue_access(self, claims: dict) -> str:
        """Sign an access token for {sub, accessRole, org}."""
        payload = {
            "sub": str(claims["sub"]),
            "accessRole": claims["accessRole"],
            "org": str(claims["org"]),
        }
        return self._encode(payload, "access", self.access_ttl, self._access_secret)

    def issue_refresh(self, claims: dict) -> str:
        """Sign a refresh token for {sub, org}."""
        payload = {"sub": str(claims["sub"]), "org": str(claims["org"])}
        return self._encode(payload, "refresh", self.refresh_ttl, self._refresh_secret)

    def verify_access(self, token: str) -> dict:
        return self._decode(token, "access", self._access_secret, ("sub", "accessRole", "org"))

    def verify_refresh(self, token: str) -> dict:
        return self._decode(token, "refresh", self._refresh_secret, ("sub", "org"))

    def _encode(self, payload: dict, token_type: str, ttl: timedelta, secret: str) -> str:
        issued_at = self._now()
        payload = {**payload, "type": token_type, "iat": issued_at, "exp": issued_at + ttl}
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def _decode(self, token: str, token_type: str, secret: str, required: tuple[str, ...]) -> dict:
        # exp is checked against the injected clock below, not time.time().
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        if payload.get("type") != token_type:
            raise InvalidTokenError(f"Expected a {token_type} token")
        missing = [claim for claim in required if claim not in payload]
        if missing:
            raise InvalidTokenError(f"Missing claims: {', '.join(missing)}")
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidTokenError("Missing or malformed exp claim")
        if self._now().timestamp() > exp:
            raise InvalidTokenError("Signature has expired.")
        return payload


# ---------------------------------------------------------------------------
# Refresh cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str, settings: Settings) -> None:
    """Write the refresh token as an httpOnly cookie on the response.

    httponly=True: page script cannot read the cookie.
    path: only sent to the refresh endpoint, never to the rest of the API.
    secure + samesite="none" in production so a separately hosted frontend
        can call the API with credentials; samesite="lax" in development.
    max_age: matches the refresh token lifetime.
    """
    production = settings.is_production
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=production,
        samesite="none" if production else "lax",
        path=REFRESH_COOKIE_PATH,
        max_age=settings.refresh_token_expire_seconds,
    )


def clear_refresh_cookie(response) -> None:
    """Expire the refresh cookie. Path must match the one it was set with."""
    response.delete_cookie(REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH)
