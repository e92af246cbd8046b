"""
api/routes/project_requests.py -- Client intake through single-use secure links.

Routes:
  POST /api/project-requests/send                -- staff: create a link, email it
  GET  /api/project-requests/form/{token}        -- public: resolve an open link
  POST /api/project-requests/form/{token}/submit -- public: submit the form once

The two /form routes carry no session. The token in the path is the only
credential; see staffing/links.py for how it is generated and consumed.

Email delivery is best-effort. The link exists before the mail is sent, so a
delivery failure still returns 200 with the form URL and an emailError field
so staff can pass the link on by hand.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from api.models import EMAIL_PATTERN, ClientProjectForm, ProjectRequestOut, ProjectRequestSend, envelope
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.store import CredentialStore
from core.errors import BadRequestError
from notify.mailer import MailDeliveryError, Mailer, build_invitation
from staffing.links import SecureLinkGenerator

logger = logging.getLogger("workmesh.api.project_requests")

router = APIRouter()

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_FALLBACK_COMPANY = "Work Mesh"


def _form_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/client/project-request/{token}"


@router.post("/project-requests/send")
def send_project_request(
    request: Request,
    body: ProjectRequestSend,
    identity: Identity = Depends(get_current_identity),
) -> dict:
    """Create a secure link for a client and email it to them."""
    client_email = body.client_email.strip().lower()
    if not client_email or not _EMAIL_RE.match(client_email):
        raise BadRequestError("Valid client email is required")

    links: SecureLinkGenerator = request.app.state.link_generator
    store: CredentialStore = request.app.state.credential_store
    settings = request.app.state.settings
    mailer: Mailer = request.app.state.mailer

    link = links.create_with_token(
        identity.organization_id,
        client_email,
        body.client_name,
        identity.employee_id,
    )
    org = store.get_organization(identity.organization_id)
    company_name = org.company_name if org is not None else _FALLBACK_COMPANY
    form_url = _form_url(settings.frontend_base_url, link.token)
    data = {"token": link.token, "formUrl": form_url, "clientEmail": link.client_email}

    message = build_invitation(settings.smtp_from, link.client_email, company_name, form_url, link.client_name or None)
    try:
        mailer.send(message)
    except MailDeliveryError as exc:
        logger.error("Invitation email for project request id=%s failed: %s", link.id, exc)
        data["emailError"] = str(exc)
        return envelope(data, "Form link created. Copy the URL and send to client manually (email failed).")
    return envelope(data, "Form link created. Email sent.")


@router.get("/project-requests/form/{token}")
def get_project_request_form(request: Request, token: str) -> dict:
    """Resolve an open link. Unknown and used links get the same 404."""
    links: SecureLinkGenerator = request.app.state.link_generator
    link = links.resolve(token)
    return envelope(ProjectRequestOut.from_domain(link).to_wire(), "Form fetched")


@router.post("/project-requests/form/{token}/submit")
def submit_project_request_form(request: Request, token: str, body: Any = Body(default=None)) -> dict:
    """Create a Draft project from the client's answers and close the link.

    The body is parsed only after the link is known to be open, so a second
    submission gets 409 whatever it contains.
    """
    links: SecureLinkGenerator = request.app.state.link_generator
    links.open_for_submit(token)
    try:
        form = ClientProjectForm.model_validate(body if body is not None else {})
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc
    project = links.submit(token, form.model_dump())
    return envelope(
        {
            "projectId": project.id,
            "status": project.status,
            "source": project.source,
            "message": "Thank you! Your project requirements have been submitted.",
        },
        "Submitted",
    )
