"""
staffing/links.py -- Single-use secure links for the public client intake form.

A ProjectRequest token is the only thing standing between an anonymous client
and a write into an organization's project list, so:

  Generation: 24 bytes from secrets (CSPRNG), hex-encoded -> 48 characters,
      192 bits of entropy. Collisions are practically impossible, but the
      generator still checks the store and regenerates on a hit, and treats a
      UNIQUE(token) violation on insert the same way. The loop has no upper
      bound: with a working random source it exits on the first iteration.

  Resolution: unknown and already-consumed tokens get the same NotFound
      ("Invalid or expired link") so an anonymous caller learns nothing about
      which tokens exist.

  Submission: a consumed token is reported explicitly (AlreadySubmitted) -- a
      client resubmitting benefits from knowing why. Creating the project and
      consuming the token happen in one store transaction.

This token space is independent of the JWT session tokens in auth/.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping
from typing import Any, Optional

from core.errors import AlreadySubmittedError, BadRequestError, NotFoundError
from staffing import normalize
from staffing.models import REQUEST_SENT, REQUEST_SUBMITTED, Project, ProjectRequest
from staffing.store import StaffingStore, TokenCollisionError

logger = logging.getLogger("workmesh.links")

TOKEN_BYTES = 24

_INVALID_LINK = "Invalid or expired link"


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


class SecureLinkGenerator:
    """Creates, resolves, and consumes ProjectRequest tokens.

    token_factory is injectable so tests can force collisions.
    """

    def __init__(self, store: StaffingStore, token_factory: Callable[[], str] = generate_token) -> None:
        self.store = store
        self._token_factory = token_factory

    def create_with_token(
        self,
        org_id: int,
        client_email: str,
        client_name: Optional[str],
        created_by: Optional[int],
    ) -> ProjectRequest:
        """Persist a new "sent" request under a token no other request holds."""
        while True:
            token = self._token_factory()
            if self.store.token_exists(token):
                logger.warning("Project request token collision; regenerating")
                continue
            try:
                return self.store.create_request(
                    ProjectRequest(
                        organization_id=org_id,
                        token=token,
                        client_email=client_email.strip().lower(),
                        client_name=(client_name or "").strip(),
                        created_by=created_by,
                    )
                )
            except TokenCollisionError:
                logger.warning("Project request token taken by a concurrent insert; regenerating")

    def resolve(self, token: str) -> ProjectRequest:
        """Return the open request for token, or raise NotFoundError."""
        request = self.store.get_request_by_token(token)
        if request is None or request.status != REQUEST_SENT:
            raise NotFoundError(_INVALID_LINK)
        return request

    def open_for_submit(self, token: str) -> ProjectRequest:
        """Return the request for token if it can still be submitted.

        Raises NotFoundError for unknown tokens and AlreadySubmittedError for
        consumed ones. Callers run this before validating the form so a
        resubmission is always reported as such, whatever its body.
        """
        request = self.store.get_request_by_token(token)
        if request is None:
            raise NotFoundError(_INVALID_LINK)
        if request.status == REQUEST_SUBMITTED:
            # The store re-checks this atomically on submit.
            raise AlreadySubmittedError()
        return request

    def submit(self, token: str, payload: Mapping[str, Any]) -> Project:
        """Turn the client's form into a Draft project and consume the token.

        payload keys: name, deadline (required); description, duration,
        priority, team_size, required_skills (optional).
        """
        request = self.open_for_submit(token)

        name = str(payload.get("name") or "").strip()
        if not name or not payload.get("deadline"):
            raise BadRequestError("Project name and deadline are required")

        project = Project(
            organization_id=request.organization_id,
            name=name,
            description=str(payload.get("description") or "").strip(),
            status="Draft",
            priority=normalize.check_priority(payload.get("priority")),
            deadline=normalize.parse_deadline(payload["deadline"]),
            duration=max(1, normalize.to_int(payload.get("duration"), 1)),
            progress=0,
            required_skills=normalize.required_skills(payload.get("required_skills")),
            team_preferences=normalize.team_preferences(payload.get("team_size")),
            created_by=request.created_by,
            source="client_form",
        )
        created = self.store.submit_request(token, project)
        logger.info("Project request id=%s submitted as project id=%s", request.id, created.id)
        return created
