"""Challenge issuance and verification for the wallet session handshake.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nacl.public import PublicKey

from didanchor.common.crypto import CryptoUtils, from_hex
from didanchor.common.exceptions import (
    ChallengeRejected,
    EncryptionKeyUnset,
    IdentifierUnresolvable,
    InvalidIdentifier,
)
from didanchor.common.identifiers import parse_did, require_full_did
from didanchor.common.models import SessionRequest

if TYPE_CHECKING:
    from didanchor.common.config import Config
    from didanchor.common.identifiers import Did
    from didanchor.common.interfaces import IChallengeVerifier, ICustodian
    from didanchor.common.models import SessionResponse
    from didanchor.server.challenge_registry import ChallengeRegistry
    from didanchor.server.resolver import NetworkResolver


class ChallengeService:
    """Issues challenges and checks the wallet's answers."""

    def __init__(
        self,
        config: Config,
        registry: ChallengeRegistry,
        verifier: IChallengeVerifier,
        encryption_key_uri: str | None = None,
    ):
        self.config = config
        self.registry = registry
        self.verifier = verifier
        self.encryption_key_uri = encryption_key_uri
        self.logger = logging.getLogger(__name__)

    def set_encryption_key_uri(self, key_uri: str) -> None:
        """Bind challenges to the application's key agreement key."""
        parsed = parse_did(key_uri)
        if parsed.key_uri is None:
            msg = f"{key_uri} is not a key URI"
            raise InvalidIdentifier(msg)
        self.encryption_key_uri = parsed.key_uri

    def issue_challenge(self) -> SessionRequest:
        """Issue a fresh challenge bound to the application's encryption key."""
        if not self.encryption_key_uri:
            raise EncryptionKeyUnset
        challenge = CryptoUtils.generate_challenge(self.config.CHALLENGE_BYTES)
        self.registry.register(challenge)
        return SessionRequest(
            name=self.config.DAPP_NAME,
            encryption_key_uri=self.encryption_key_uri,
            challenge=challenge,
        )

    def verify(
        self,
        session_request: SessionRequest,
        session_response: SessionResponse,
        claimed_did: str,
    ) -> str:
        """Verify a session response, returning the authenticated DID."""
        claimed = require_full_did(claimed_did)
        self._validate_request_binding(session_request)
        # Consumed before the cryptographic check, so failures burn it too
        if not self.registry.consume(session_request.challenge):
            msg = "unknown, expired or already used challenge"
            raise ChallengeRejected(msg)
        self.verifier.verify(session_request, session_response, claimed)
        self.logger.info("Session verified for %s", claimed.uri)
        return claimed.uri

    def _validate_request_binding(self, session_request: SessionRequest) -> None:
        if not self.encryption_key_uri:
            raise EncryptionKeyUnset
        if session_request.encryption_key_uri != self.encryption_key_uri:
            msg = "session request is not bound to this application's key"
            raise ChallengeRejected(msg)


class DecryptingChallengeVerifier:
    """Decrypts the answer with the application's key agreement secret.

    The sender key must be a key agreement key of the claimed DID, as found
    on the ledger.
    """

    def __init__(self, resolver: NetworkResolver, custodian: ICustodian):
        self.resolver = resolver
        self.custodian = custodian
        self.logger = logging.getLogger(__name__)

    def verify(
        self,
        session_request: SessionRequest,
        session_response: SessionResponse,
        claimed: Did,
    ) -> None:
        sender = self._sender_key(session_response, claimed)
        sender_public = self._lookup_key_agreement(sender, claimed)
        plaintext = CryptoUtils.open_challenge(
            session_response.encrypted_challenge,
            session_response.nonce,
            self.custodian.key_agreement_secret(),
            sender_public,
        )
        if plaintext is None:
            msg = "could not decrypt the challenge"
            raise ChallengeRejected(msg)
        if not CryptoUtils.constant_time_equals(
            plaintext, from_hex(session_request.challenge)
        ):
            msg = "challenge mismatch"
            raise ChallengeRejected(msg)

    def _sender_key(self, session_response: SessionResponse, claimed: Did) -> Did:
        try:
            sender = parse_did(session_response.encryption_key_uri)
        except InvalidIdentifier as err:
            raise ChallengeRejected(str(err)) from err
        if sender.fragment is None or sender.uri != claimed.uri:
            msg = "encryption key does not belong to the claimed DID"
            raise ChallengeRejected(msg)
        return sender

    def _lookup_key_agreement(self, sender: Did, claimed: Did) -> PublicKey:
        try:
            resolved = self.resolver.resolve(claimed.uri)
        except IdentifierUnresolvable as err:
            raise ChallengeRejected(str(err)) from err

        document = resolved.document
        fragment = f"#{sender.fragment}"
        if not any(ref.endswith(fragment) for ref in document.key_agreement):
            msg = f"{sender} is not a key agreement key of {claimed.uri}"
            raise ChallengeRejected(msg)
        method = document.get_verification_method(fragment)
        if method is None:
            msg = f"verification method {sender} not found"
            raise ChallengeRejected(msg)
        try:
            return PublicKey(from_hex(method.public_key_hex))
        except ValueError as err:
            raise ChallengeRejected(str(err)) from err


class InsecureClaimTrustVerifier:
    """Accepts any well-formed response. Test fixtures only."""

    def verify(
        self,
        session_request: SessionRequest,
        session_response: SessionResponse,
        claimed: Did,
    ) -> None:
        return None
