"""
Custom exceptions for the DID session and anchoring service.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception carrying the HTTP status it maps to."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Exception for malformed caller input."""


class RateLimitError(ServiceError):
    """Exception for rate limiting."""

    status_code = 429


class InvalidIdentifier(ValidationError):
    """The value is not a well-formed DID or key URI."""


class LightDidNotAllowed(ServiceError):
    """A light DID was used where an on-chain DID is required."""

    status_code = 403

    def __init__(self, did: str) -> None:
        super().__init__(
            f"light DID {did} cannot be used here, select a full DID"
        )
        self.did = did


class IdentifierUnresolvable(ServiceError):
    """No configured network hosts the DID document."""

    status_code = 404

    def __init__(self, did: str, networks: list[str] | None = None) -> None:
        tried = ", ".join(networks or [])
        msg = f"could not resolve {did}"
        if tried:
            msg += f" on any network ({tried})"
        super().__init__(msg)
        self.did = did
        self.networks = networks or []


class InvalidSchema(ValidationError):
    """The CType schema is not structurally valid."""


class MissingPayerAccount(ValidationError):
    """A user-paid transaction was requested without the payer's address."""

    def __init__(self) -> None:
        super().__init__('userAccountAddress is required when paymentType is "user"')


class InvalidAuthorizationMode(ValidationError):
    """Unsupported payer/signer combination."""


class DispatchError(ServiceError):
    """The ledger rejected the transaction."""

    status_code = 422

    def __init__(self, details: str) -> None:
        super().__init__(f"transaction rejected by the ledger: {details}")
        self.details = details


class SubmissionUnreachable(ServiceError):
    """The ledger node could not be reached or the connection dropped."""

    status_code = 502


class SubmissionTimeout(SubmissionUnreachable):
    """The transaction was not included in a block before the deadline."""

    status_code = 504


class NoAssertionCapability(ServiceError):
    """The attester's DID document has no assertion method."""

    status_code = 422

    def __init__(self, did: str) -> None:
        super().__init__(f"DID {did} has no assertion method")
        self.did = did


class SignerUnavailable(ServiceError):
    """The application does not hold the key for the required capability."""

    status_code = 422


class InvalidToken(ServiceError):
    """The access token is expired, malformed or tampered with."""

    status_code = 401

    def __init__(self, message: str = "invalid token") -> None:
        super().__init__(message)


class EncryptionKeyUnset(ServiceError):
    """The application's own encryption key URI is not known yet."""

    status_code = 503

    def __init__(self) -> None:
        super().__init__("application encryption key URI is not initialized")


class CustodialKeyUnset(ServiceError):
    """No custodial secret is configured for the network."""

    status_code = 503

    def __init__(self, network: str) -> None:
        super().__init__(f"payer mnemonic not configured for network {network}")
        self.network = network


class ChallengeRejected(ServiceError):
    """The session response does not prove possession of the claimed DID."""

    status_code = 403


class AttesterNotAuthorized(ServiceError):
    """The caller may not have credentials issued by the chosen attester."""

    status_code = 403

    def __init__(self, attester_did: str) -> None:
        super().__init__(f"{attester_did} is not an authorized attester")
        self.attester_did = attester_did


class CTypeNotFound(ServiceError):
    """The CType is not registered on the network."""

    status_code = 404

    def __init__(self, ctype_hash: str, network: str) -> None:
        super().__init__(f"CType {ctype_hash} is not registered on {network}")
        self.ctype_hash = ctype_hash
        self.network = network


class UserNotFound(ServiceError):
    """No application user is registered under the DID."""

    status_code = 404

    def __init__(self, did: str) -> None:
        super().__init__(f"user {did} not found")
        self.did = did
