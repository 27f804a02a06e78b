"""Attestation anchoring.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from didanchor.common.crypto import CryptoUtils, strip_hex_prefix
from didanchor.common.exceptions import (
    CTypeNotFound,
    NoAssertionCapability,
    SignerUnavailable,
    ValidationError,
)
from didanchor.common.identifiers import require_full_did
from didanchor.common.models import (
    CTYPE_ID_PREFIX,
    AttestationOutcome,
    AttestationRecord,
    Network,
    SubmissionResult,
)
from didanchor.ledger import open_connection

if TYPE_CHECKING:
    from substrateinterface import Keypair

    from didanchor.common.interfaces import ICustodian, ILedgerConnector
    from didanchor.common.models import ResolvedDid
    from didanchor.server.domain.transaction_submitter import TransactionSubmitter
    from didanchor.server.resolver import NetworkResolver

HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


class AttestationHandler:
    """Anchors attestations signed with the application's assertion key."""

    def __init__(
        self,
        connector: ILedgerConnector,
        resolver: NetworkResolver,
        submitter: TransactionSubmitter,
        custodian: ICustodian,
    ):
        self.connector = connector
        self.resolver = resolver
        self.submitter = submitter
        self.custodian = custodian
        self.logger = logging.getLogger(__name__)

    def anchor(
        self,
        claim_hash: str,
        ctype_hash: str,
        attester_did: str,
        network: Network | None = None,
    ) -> SubmissionResult:
        """Write an attestation for claim_hash to the ledger."""
        attester = require_full_did(attester_did)
        claim_hash = self._validate_hash(claim_hash, "claim hash")
        ctype_hash = self._validate_hash(
            CryptoUtils.ctype_id_to_hash(ctype_hash), "ctype hash"
        )

        resolved = (
            self.resolver.resolve_on(attester.uri, Network(network))
            if network is not None
            else self.resolver.resolve(attester.uri)
        )
        signer = self._assertion_signer(resolved)
        submitter = self.custodian.payer_address(resolved.network)

        def build_call(connection: Any) -> Any:
            call = connection.compose_attestation(claim_hash, ctype_hash)
            return connection.authorize_did_call(call, attester, submitter, signer)

        self.logger.info(
            "Anchoring attestation %s by %s on %s",
            claim_hash,
            attester.uri,
            resolved.network.value,
        )
        return self.submitter.sign_and_submit_call(
            resolved.network, build_call, claim_hash
        )

    def start_attestation(  # noqa: PLR0913
        self,
        ctype_hash: str,
        claim_contents: dict[str, Any],
        claimer_did: str,
        attester_did: str,
        network: Network,
    ) -> AttestationOutcome:
        """Compose a credential for the claimer's contents and anchor its root hash."""
        claimer = require_full_did(claimer_did)
        ctype_hash = self._validate_hash(
            CryptoUtils.ctype_id_to_hash(ctype_hash), "ctype hash"
        )
        if not claim_contents:
            msg = "claim contents are empty"
            raise ValidationError(msg)

        network = Network(network)
        with open_connection(self.connector, network) as connection:
            if not connection.ctype_exists(ctype_hash):
                raise CTypeNotFound(ctype_hash, network.value)

        statements = {**claim_contents, "@id": claimer.uri}
        claim_hashes, _ = CryptoUtils.hash_statements(
            CTYPE_ID_PREFIX + ctype_hash, statements
        )
        root_hash = CryptoUtils.calculate_root_hash(claim_hashes)
        submission = self.anchor(root_hash, ctype_hash, attester_did, network)
        return AttestationOutcome(
            attestation=AttestationRecord(
                claim_hash=root_hash,
                ctype_hash=ctype_hash,
                owner=require_full_did(attester_did).uri,
            ),
            credential_hash=root_hash,
            submission=submission,
        )

    def _assertion_signer(self, resolved: ResolvedDid) -> Keypair:
        document = resolved.document
        if not document.assertion_method:
            raise NoAssertionCapability(document.id)
        method = document.get_verification_method(document.assertion_method[0])
        if method is None:
            raise NoAssertionCapability(document.id)

        signer = self.custodian.assertion_keypair()
        held = strip_hex_prefix(signer.public_key.hex()).lower()
        if strip_hex_prefix(method.public_key_hex).lower() != held:
            msg = f"assertion key of {document.id} is not held by this application"
            raise SignerUnavailable(msg)
        return signer

    @staticmethod
    def _validate_hash(value: str, label: str) -> str:
        if not HASH_PATTERN.match(value or ""):
            msg = f"{label} must be 0x followed by 64 hex characters"
            raise ValidationError(msg)
        return value.lower()
