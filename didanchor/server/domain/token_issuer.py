"""Access token issuance for authenticated DIDs.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

import jwt
from pydantic import ValidationError as PydanticValidationError

from didanchor.common.exceptions import InvalidToken
from didanchor.common.identifiers import require_full_did
from didanchor.common.models import (
    AuthenticatedUser,
    SessionResult,
    TokenPayload,
    UserRecord,
)

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.ed25519 import (
        Ed25519PrivateKey,
        Ed25519PublicKey,
    )

    from didanchor.common.config import Config
    from didanchor.common.interfaces import IUserStore


class TokenIssuer:
    """Signs and verifies EdDSA session tokens."""

    def __init__(  # noqa: PLR0913
        self,
        config: Config,
        user_store: IUserStore,
        private_key: Ed25519PrivateKey,
        public_key: Ed25519PublicKey,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.user_store = user_store
        self.private_key = private_key
        self.public_key = public_key
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def authenticate(self, did: str) -> SessionResult:
        """Create the user on first login and issue a token."""
        parsed = require_full_did(did)
        user = self.user_store.get_or_create(parsed.uri, self.config.DEFAULT_ROLE)
        token = self.issue(user)
        self.logger.info("Issued token for %s as %s", user.did, user.primary_role.value)
        return SessionResult(
            jwt=token, user=AuthenticatedUser(did=user.did, roles=user.roles)
        )

    def issue(self, user: UserRecord) -> str:
        now = int(self.clock())
        payload = TokenPayload(
            did=user.did,
            role=user.primary_role,
            iat=now,
            exp=now + self.config.TOKEN_TTL,
        )
        return jwt.encode(
            payload.model_dump(mode="json"),
            self.private_key,
            algorithm=self.config.TOKEN_ALGORITHM,
        )

    def verify_token(self, token: str) -> TokenPayload:
        """Decode a token; any signature, format or expiry problem is InvalidToken."""
        try:
            claims = jwt.decode(
                token,
                self.public_key,
                algorithms=[self.config.TOKEN_ALGORITHM],
                options={"require": ["exp", "did", "role"]},
            )
            return TokenPayload.model_validate(claims)
        except jwt.ExpiredSignatureError as err:
            msg = "token expired"
            raise InvalidToken(msg) from err
        except (jwt.InvalidTokenError, PydanticValidationError) as err:
            raise InvalidToken from err
