"""
HTTP client for the anchoring server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

from didanchor.common.config import Config
from didanchor.common.models import (
    AttestationOutcome,
    CurrentUser,
    Network,
    PaymentType,
    Role,
    SessionRequest,
    SessionResult,
    SigningType,
    SubmissionResult,
    TransactionEnvelope,
    VerifySessionRequest,
)

if TYPE_CHECKING:
    from nacl.public import PublicKey

    from .wallet import Wallet

logger = logging.getLogger(__name__)


class AnchorClient:
    """Logs in with a wallet and calls the authenticated endpoints.

    HTTP errors surface as ``requests.HTTPError``.
    """

    def __init__(
        self,
        server_url: str | None = None,
        timeout: float = 90.0,
        session: requests.Session | None = None,
    ):
        self.server_url = (server_url or Config().SERVER_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token: str | None = None

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.request(
            method,
            self.server_url + path,
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        response.raise_for_status()
        return response.json()

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def challenge(self) -> SessionRequest:
        return SessionRequest.model_validate(self._request("GET", "/auth/challenge"))

    def login(self, wallet: Wallet, app_public_key: PublicKey | str) -> SessionResult:
        """Run the challenge handshake and keep the issued token."""
        session_request = self.challenge()
        body = VerifySessionRequest(
            session_request=session_request,
            session_response=wallet.answer(session_request, app_public_key),
            user_did=wallet.did,
        )
        result = SessionResult.model_validate(
            self._request(
                "POST",
                "/auth/verify-session",
                json=body.model_dump(mode="json", by_alias=True),
            )
        )
        self.token = result.jwt
        logger.info("Logged in as %s", result.user.did)
        return result

    def me(self) -> CurrentUser:
        return CurrentUser.model_validate(self._request("GET", "/auth/me"))

    def set_roles(self, did: str, roles: list[Role]) -> CurrentUser:
        """Replace the roles of a registered user (admin only)."""
        data = self._request(
            "POST",
            "/auth/add-roles",
            json={"did": did, "roles": [Role(r).value for r in roles]},
        )
        return CurrentUser.model_validate(data)

    def prepare_ctype(  # noqa: PLR0913
        self,
        schema: dict[str, Any],
        network: Network,
        user_did: str,
        payment_type: PaymentType = PaymentType.SYSTEM,
        signing_type: SigningType = SigningType.USER,
        user_account_address: str | None = None,
    ) -> TransactionEnvelope | SubmissionResult:
        """Prepare a CType registration, or register it outright when system-signed."""
        data = self._request(
            "POST",
            "/api/admin/ctypes/prepare",
            json={
                "schema": schema,
                "network": Network(network).value,
                "userDid": user_did,
                "paymentType": PaymentType(payment_type).value,
                "signingType": SigningType(signing_type).value,
                "userAccountAddress": user_account_address,
            },
        )
        if "extrinsic" in data:
            return TransactionEnvelope.model_validate(data)
        return SubmissionResult.model_validate(data)

    def submit_ctype(  # noqa: PLR0913
        self,
        schema: dict[str, Any],
        network: Network,
        user_did: str,
        signed_extrinsic: str,
        submitter: str | None = None,
    ) -> SubmissionResult:
        data = self._request(
            "POST",
            "/api/admin/ctypes/submit",
            json={
                "schema": schema,
                "network": Network(network).value,
                "userDid": user_did,
                "signedExtrinsic": signed_extrinsic,
                "submitter": submitter,
            },
        )
        return SubmissionResult.model_validate(data)

    def anchor(
        self,
        claim_hash: str,
        ctype_hash: str,
        attester_did: str,
        network: Network | None = None,
    ) -> SubmissionResult:
        data = self._request(
            "POST",
            "/api/attestations/anchor",
            json={
                "claimHash": claim_hash,
                "ctypeHash": ctype_hash,
                "attesterDid": attester_did,
                "network": Network(network).value if network else None,
            },
        )
        return SubmissionResult.model_validate(data)

    def start_attestation(
        self,
        ctype_hash: str,
        claim_contents: dict[str, Any],
        attester_did: str,
        network: Network,
    ) -> AttestationOutcome:
        data = self._request(
            "POST",
            "/api/attestations/start",
            json={
                "ctypeHash": ctype_hash,
                "claimContents": claim_contents,
                "attesterDid": attester_did,
                "network": Network(network).value,
            },
        )
        return AttestationOutcome.model_validate(data)
