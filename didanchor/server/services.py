"""Business logic services for the anchoring server.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from fastapi.concurrency import run_in_threadpool

from didanchor.common.crypto import CryptoUtils, strip_hex_prefix, to_hex
from didanchor.common.exceptions import (
    AttesterNotAuthorized,
    InvalidAuthorizationMode,
    InvalidToken,
    UserNotFound,
)
from didanchor.common.identifiers import parse_did, require_full_did
from didanchor.common.models import AuthorizationMode, CurrentUser, Role

if TYPE_CHECKING:
    import logging

    from didanchor.common.config import Config
    from didanchor.common.interfaces import ICustodian, IUserStore
    from didanchor.common.models import (
        AnchorRequest,
        AttestationOutcome,
        PrepareCTypeRequest,
        SessionRequest,
        SessionResponse,
        SessionResult,
        SetRolesRequest,
        StartAttestationRequest,
        SubmissionResult,
        SubmitCTypeRequest,
        TokenPayload,
        TransactionEnvelope,
        UserRecord,
    )
    from didanchor.server.domain.attestation_handler import AttestationHandler
    from didanchor.server.domain.challenge_handler import ChallengeService
    from didanchor.server.domain.token_issuer import TokenIssuer
    from didanchor.server.domain.transaction_preparer import TransactionPreparer
    from didanchor.server.domain.transaction_submitter import TransactionSubmitter
    from didanchor.server.resolver import NetworkResolver


class AnchorService:
    """Async facade over the domain handlers.

    Ledger-bound work runs in the threadpool so the event loop stays free.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: Config,
        user_store: IUserStore,
        resolver: NetworkResolver,
        challenge_service: ChallengeService,
        token_issuer: TokenIssuer,
        preparer: TransactionPreparer,
        submitter: TransactionSubmitter,
        attestation_handler: AttestationHandler,
        custodian: ICustodian,
        logger: logging.Logger,
    ):
        self.config = config
        self.user_store = user_store
        self.resolver = resolver
        self.challenge_service = challenge_service
        self.token_issuer = token_issuer
        self.preparer = preparer
        self.submitter = submitter
        self.attestation_handler = attestation_handler
        self.custodian = custodian
        self.logger = logger

    def health(self) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "timestamp": int(time.time())}

    def initialize_app_did(self) -> str:
        """Resolve the application's DID and bind challenges to its key agreement key."""
        if not self.config.DAPP_DID_URI:
            self.logger.warning("DAPP_DID_URI not set, challenges are disabled")
            return ""
        did = parse_did(self.config.DAPP_DID_URI)
        resolved = self.resolver.resolve_on(did.uri, self.config.DEFAULT_NETWORK)
        if not resolved.document.key_agreement:
            self.logger.warning("%s has no key agreement key", did.uri)
            return ""
        key_uri = resolved.document.key_agreement[0]
        if key_uri.startswith("#"):
            key_uri = did.uri + key_uri
        method = resolved.document.get_verification_method(key_uri)
        held = to_hex(bytes(self.custodian.key_agreement_secret().public_key))
        on_chain = strip_hex_prefix(method.public_key_hex).lower() if method else None
        if on_chain != strip_hex_prefix(held):
            self.logger.error(
                "Key agreement key %s does not match DAPP_ACCOUNT_MNEMONIC "
                "(derived %s), sessions could not be decrypted",
                key_uri,
                held,
            )
            return ""
        self.challenge_service.set_encryption_key_uri(key_uri)
        self.logger.info("Application encryption key: %s", key_uri)
        return key_uri

    async def issue_challenge(self) -> SessionRequest:
        return self.challenge_service.issue_challenge()

    async def verify_session(
        self,
        session_request: SessionRequest,
        session_response: SessionResponse,
        user_did: str,
    ) -> SessionResult:
        did = await run_in_threadpool(
            self.challenge_service.verify, session_request, session_response, user_did
        )
        return await run_in_threadpool(self.token_issuer.authenticate, did)

    def authenticate_bearer(self, token: str) -> tuple[TokenPayload, UserRecord]:
        """Verify a bearer token and load the user it names."""
        payload = self.token_issuer.verify_token(token)
        user = self.user_store.get(payload.did)
        if user is None:
            msg = "user not found"
            raise InvalidToken(msg)
        return payload, user

    async def current_user(self, user: UserRecord) -> CurrentUser:
        return CurrentUser(did=user.did, roles=user.roles, primary_role=user.primary_role)

    async def set_roles(self, req: SetRolesRequest) -> CurrentUser:
        """Replace the roles of a registered user."""
        if self.user_store.get(req.did) is None:
            raise UserNotFound(req.did)
        user = self.user_store.set_roles(req.did, list(dict.fromkeys(req.roles)))
        self.logger.info(
            "Roles of %s set to %s", user.did, ", ".join(r.value for r in user.roles)
        )
        return await self.current_user(user)

    async def prepare_ctype(
        self, req: PrepareCTypeRequest
    ) -> TransactionEnvelope | SubmissionResult:
        """Prepare a CType registration; system-signed ones are submitted at once."""
        try:
            mode = AuthorizationMode.from_types(req.payment_type, req.signing_type)
        except ValueError as err:
            raise InvalidAuthorizationMode(str(err)) from err

        envelope = await run_in_threadpool(
            self.preparer.prepare,
            req.ctype_schema,
            req.network,
            req.user_did,
            mode,
            req.user_account_address,
        )
        if mode is AuthorizationMode.SYSTEM_PAYS_SYSTEM_SIGNS:
            return await run_in_threadpool(self.submitter.sign_and_submit, envelope)
        return envelope

    async def submit_ctype(self, req: SubmitCTypeRequest) -> SubmissionResult:
        """Submit a CType registration signed by the user's wallet."""
        owner = require_full_did(req.user_did)
        ctype = self.preparer.normalize_schema(req.ctype_schema)
        serialized = CryptoUtils.serialize_ctype(ctype)
        resource_hash = CryptoUtils.ctype_id_to_hash(
            CryptoUtils.ctype_id_for_schema(ctype)
        )
        return await run_in_threadpool(
            self.submitter.submit,
            req.signed_extrinsic,
            req.network,
            req.submitter or owner.address,
            resource_hash,
            serialized,
        )

    async def anchor(self, req: AnchorRequest) -> SubmissionResult:
        return await run_in_threadpool(
            self.attestation_handler.anchor,
            req.claim_hash,
            req.ctype_hash,
            req.attester_did,
            req.network,
        )

    def authorize_attester(self, caller: UserRecord, attester_did: str) -> None:
        """Registered attesters may attest; the application DID only for admins."""
        attester_uri = require_full_did(attester_did).uri
        attester = self.user_store.get(attester_uri)
        if attester is not None and Role.ATTESTER in attester.roles:
            return
        app_did = self.config.DAPP_DID_URI
        if app_did and attester_uri == app_did:
            if caller.did == app_did or Role.ADMIN in caller.roles:
                return
        self.logger.warning(
            "%s asked %s to attest without authorization", caller.did, attester_uri
        )
        raise AttesterNotAuthorized(attester_uri)

    async def start_attestation(
        self, req: StartAttestationRequest, caller: UserRecord
    ) -> AttestationOutcome:
        self.authorize_attester(caller, req.attester_did)
        return await run_in_threadpool(
            self.attestation_handler.start_attestation,
            req.ctype_hash,
            req.claim_contents,
            caller.did,
            req.attester_did,
            req.network,
        )
