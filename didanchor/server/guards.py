"""
Bearer token and role guards for FastAPI routes.
"""

from typing import Awaitable, Callable, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from didanchor.common.exceptions import InvalidToken
from didanchor.common.models import Role, UserRecord

from .services import AnchorService

bearer_scheme = HTTPBearer(auto_error=False)

Dependency = Callable[..., Awaitable[UserRecord]]


class RoleGuard:
    """Builds route dependencies that authenticate and authorize callers.

    The authenticated user is stored on ``request.state.user``. The
    application's own DID passes every role check.
    """

    def __init__(self, service: AnchorService, app_did: Optional[str]):
        self.service = service
        self.app_did = app_did

    def authenticated(self) -> Dependency:
        service = self.service

        async def dependency(
            request: Request,
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(
                bearer_scheme
            ),
        ) -> UserRecord:
            if credentials is None or credentials.scheme.lower() != "bearer":
                raise HTTPException(
                    401,
                    "missing bearer token",
                    headers={"WWW-Authenticate": "Bearer"},
                )
            try:
                _, user = service.authenticate_bearer(credentials.credentials)
            except InvalidToken as e:
                raise HTTPException(
                    e.status_code, str(e), headers={"WWW-Authenticate": "Bearer"}
                ) from e
            request.state.user = user
            return user

        return dependency

    def require_roles(self, *roles: Role) -> Dependency:
        authenticated = self.authenticated()
        allowed = set(roles)
        app_did = self.app_did

        async def dependency(user: UserRecord = Depends(authenticated)) -> UserRecord:
            if app_did and user.did == app_did:
                return user
            if not allowed.intersection(user.roles):
                names = ", ".join(sorted(r.value for r in allowed))
                raise HTTPException(403, f"requires one of the roles: {names}")
            return user

        return dependency
