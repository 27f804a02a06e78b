"""
Routes for the anchoring server.
"""

import logging
from typing import Any, Awaitable, TypeVar, Union

from fastapi import Depends, FastAPI, HTTPException, Request, Response

from didanchor.common.exceptions import ServiceError
from didanchor.common.models import (
    AnchorRequest,
    AttestationOutcome,
    CurrentUser,
    PrepareCTypeRequest,
    Role,
    SessionRequest,
    SessionResult,
    SetRolesRequest,
    StartAttestationRequest,
    SubmissionResult,
    SubmitCTypeRequest,
    TransactionEnvelope,
    VerifySessionRequest,
)

from .guards import RoleGuard
from .services import AnchorService

T = TypeVar("T")


class AnchorRoutes:
    """Handles FastAPI routes for the anchoring server."""

    def __init__(self, service: AnchorService, guard: RoleGuard):
        self.service = service
        self.guard = guard
        self.logger = logging.getLogger(__name__)

    def setup_routes(self, app: FastAPI) -> None:
        """Setup API routes on the FastAPI app."""
        authenticated = [Depends(self.guard.authenticated())]
        admin = [Depends(self.guard.require_roles(Role.ADMIN))]
        attester = [Depends(self.guard.require_roles(Role.ATTESTER, Role.ADMIN))]

        app.get("/health")(self.health)
        app.get("/auth/challenge")(self.challenge)
        app.post("/auth/verify-session")(self.verify_session)
        app.get("/auth/me", dependencies=authenticated)(self.me)
        app.post("/auth/add-roles", dependencies=admin)(self.add_roles)
        app.post("/api/admin/ctypes/prepare", dependencies=admin)(self.prepare_ctype)
        app.post("/api/admin/ctypes/submit", status_code=201, dependencies=admin)(
            self.submit_ctype
        )
        app.post("/api/attestations/anchor", status_code=201, dependencies=attester)(
            self.anchor
        )
        app.post(
            "/api/attestations/start", status_code=201, dependencies=authenticated
        )(self.start_attestation)

    async def _guarded(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except ServiceError as e:
            self.logger.info("%s failed: %s", operation, e)
            raise HTTPException(e.status_code, str(e)) from e
        except Exception:
            self.logger.exception("Unexpected error in %s", operation)
            raise

    async def health(self) -> dict[str, Any]:
        """Handle /health endpoint."""
        return self.service.health()

    async def challenge(self) -> SessionRequest:
        """Handle /auth/challenge endpoint."""
        return await self._guarded("challenge", self.service.issue_challenge())

    async def verify_session(self, req: VerifySessionRequest) -> SessionResult:
        """Handle /auth/verify-session endpoint."""
        return await self._guarded(
            "verify-session",
            self.service.verify_session(
                req.session_request, req.session_response, req.user_did
            ),
        )

    async def me(self, request: Request) -> CurrentUser:
        """Handle /auth/me endpoint."""
        return await self.service.current_user(request.state.user)

    async def add_roles(self, req: SetRolesRequest) -> CurrentUser:
        """Handle /auth/add-roles endpoint."""
        return await self._guarded("add-roles", self.service.set_roles(req))

    async def prepare_ctype(
        self, req: PrepareCTypeRequest, response: Response
    ) -> Union[TransactionEnvelope, SubmissionResult]:
        """Handle /api/admin/ctypes/prepare endpoint."""
        result = await self._guarded("prepare", self.service.prepare_ctype(req))
        if isinstance(result, SubmissionResult):
            response.status_code = 201
        return result

    async def submit_ctype(self, req: SubmitCTypeRequest) -> SubmissionResult:
        """Handle /api/admin/ctypes/submit endpoint."""
        return await self._guarded("submit", self.service.submit_ctype(req))

    async def anchor(self, req: AnchorRequest) -> SubmissionResult:
        """Handle /api/attestations/anchor endpoint."""
        return await self._guarded("anchor", self.service.anchor(req))

    async def start_attestation(
        self, req: StartAttestationRequest, request: Request
    ) -> AttestationOutcome:
        """Handle /api/attestations/start endpoint."""
        return await self._guarded(
            "start-attestation",
            self.service.start_attestation(req, request.state.user),
        )
