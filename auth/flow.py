"""
auth/flow.py -- Register, login, and refresh, composed from the store and issuer.

Logout has no server-side half: tokens are stateless and there is no denylist,
so the route only clears the refresh cookie.

Error messages:
  Unknown email and wrong password both yield "Invalid email or password".
  An employee with no stored password gets a distinct message so admins can
  tell an onboarding gap from a typo. Login runs one bcrypt comparison even
  when the email is unknown, so response time stays flat.

Layer rule: no imports from api/, staffing/, or notify/. fastapi is not
imported here -- routes own the HTTP details (cookie, status, envelope).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth.models import Availability, Employee, Organization
from auth.store import CredentialStore
from auth.tokens import InvalidTokenError, TokenIssuer, burn_password_check
from core.errors import BadRequestError, ConflictError, InternalError, UnauthenticatedError

logger = logging.getLogger("workmesh.auth")

_BAD_CREDENTIALS = "Invalid email or password"
_NO_LOGIN_ACCESS = "This account does not have login access. Contact your admin."


@dataclass
class AuthResult:
    """Outcome of a successful register or login.

    refresh_token belongs in the httpOnly cookie only; it is never serialized
    into a response body.
    """

    employee: Employee
    organization: Organization
    access_token: str
    refresh_token: str

    def user_projection(self) -> dict:
        """Sanitized user view: no password hash, access role exposed as role."""
        return {
            "id": self.employee.id,
            "name": self.employee.name,
            "email": self.employee.email,
            "role": self.employee.access_role,
            "photoUrl": self.employee.photo_url,
            "organizationId": self.organization.id,
            "organizationName": self.organization.company_name,
        }


class AuthFlow:
    def __init__(self, store: CredentialStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    def register(
        self,
        company_name: str,
        location: str,
        email: str,
        password: str,
        company_size: Optional[str] = None,
        website: Optional[str] = None,
        admin_name: Optional[str] = None,
    ) -> AuthResult:
        """Create a tenant and its bootstrap Admin, then start a session for them."""
        if not all(v and str(v).strip() for v in (company_name, location, email, password)):
            raise BadRequestError("companyName, location, email, password are required")

        if self.store.find_by_email_global(email) is not None:
            raise ConflictError("Email already registered")

        org = self.store.create_organization(company_name, location, company_size, website)
        admin = self.store.create_employee(
            org.id,
            Employee(
                organization_id=org.id,
                name=(admin_name or "").strip() or "Admin",
                email=email,
                department="Management",
                role="Admin",
                access_role="Admin",
                experience=0,
                skills=[],
                availability=Availability(),
            ),
            password,
        )
        logger.info("Registered organization id=%s with admin id=%s", org.id, admin.id)
        return self._start_session(admin, org)

    def login(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            raise BadRequestError("email and password are required")

        employee = self.store.find_by_email_global(email)
        if employee is None:
            burn_password_check(password)
            raise UnauthenticatedError(_BAD_CREDENTIALS)
        if not employee.can_login:
            burn_password_check(password)
            raise UnauthenticatedError(_NO_LOGIN_ACCESS)
        if not self.store.verify_password(employee, password):
            raise UnauthenticatedError(_BAD_CREDENTIALS)

        org = self.store.get_organization(employee.organization_id)
        if org is None:
            logger.error("Employee id=%s references missing organization id=%s", employee.id, employee.organization_id)
            raise InternalError("Organization not found")
        return self._start_session(employee, org)

    def refresh(self, refresh_token: Optional[str]) -> str:
        """Mint a new access token from a refresh token.

        Role and organization come from the current employee record, not from
        the refresh claims, so a role change takes effect on the next refresh.
        The refresh token itself is not rotated.
        """
        if not refresh_token:
            raise UnauthenticatedError("Missing refresh token")
        try:
            claims = self.issuer.verify_refresh(refresh_token)
            employee_id = int(claims["sub"])
        except (InvalidTokenError, ValueError) as exc:
            raise UnauthenticatedError("Invalid refresh token") from exc

        employee = self.store.get_employee(employee_id)
        if employee is None:
            raise UnauthenticatedError("Invalid refresh token")
        return self.issuer.issue_access(_access_claims(employee))

    def _start_session(self, employee: Employee, org: Organization) -> AuthResult:
        return AuthResult(
            employee=employee,
            organization=org,
            access_token=self.issuer.issue_access(_access_claims(employee)),
            refresh_token=self.issuer.issue_refresh({"sub": employee.id, "org": employee.organization_id}),
        )


def _access_claims(employee: Employee) -> dict:
    return {"sub": employee.id, "accessRole": employee.access_role, "org": employee.organization_id}
