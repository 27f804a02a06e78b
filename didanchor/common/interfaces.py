"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from nacl.public import PrivateKey
    from substrateinterface import Keypair

    from didanchor.common.identifiers import Did
    from didanchor.common.models import (
        DidDocument,
        InclusionReceipt,
        Network,
        Role,
        SessionRequest,
        SessionResponse,
        UserRecord,
    )


class ILedgerConnection(Protocol):
    """An open session with one ledger network.

    Calls are opaque objects produced and consumed by the same connection.
    """

    network: Network

    def query_did(self, did: Did) -> DidDocument | None: ...

    def compose_ctype_registration(self, ctype: str) -> Any: ...

    def compose_attestation(self, claim_hash: str, ctype_hash: str) -> Any: ...

    def authorize_did_call(
        self, call: Any, did: Did, submitter: str, signer: Keypair
    ) -> Any: ...

    def encode_unsigned(self, call: Any) -> str: ...

    def decode_call(self, extrinsic: str) -> Any: ...

    def extract_ctype(self, extrinsic: str) -> str | None: ...

    def ctype_exists(self, ctype_hash: str) -> bool: ...

    def sign(self, call: Any, keypair: Keypair) -> str: ...

    def submit_and_watch(self, extrinsic: str, timeout: float) -> InclusionReceipt: ...

    def close(self) -> None: ...


class ILedgerConnector(Protocol):
    """Factory of ledger connections."""

    def connect(self, network: Network) -> ILedgerConnection: ...


class IUserStore(Protocol):
    """Protocol for user persistence."""

    def get(self, did: str) -> UserRecord | None: ...

    def get_or_create(self, did: str, default_role: Role) -> UserRecord: ...

    def set_roles(self, did: str, roles: list[Role]) -> UserRecord: ...


class IChallengeVerifier(Protocol):
    """Checks that a session response proves control of the claimed DID."""

    def verify(
        self,
        session_request: SessionRequest,
        session_response: SessionResponse,
        claimed: Did,
    ) -> None: ...


class ICustodian(Protocol):
    """Holder of the application's secrets."""

    def payer_keypair(self, network: Network) -> Keypair: ...

    def payer_address(self, network: Network) -> str: ...

    def assertion_keypair(self) -> Keypair: ...

    def key_agreement_secret(self) -> PrivateKey: ...
