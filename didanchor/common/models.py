"""
Pydantic models for request/response validation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

CTYPE_SCHEMA_URI = "http://kilt-protocol.org/draft-01/ctype#"
CTYPE_SCHEMA_URI_V1 = (
    "ipfs://bafybeiah66wbkhqbqn7idkostj2iqyan2tstc4tpqt65udlhimd7hcxjyq"
)
CTYPE_ID_PREFIX = "kilt:ctype:"


class Network(str, Enum):
    SPIRITNET = "spiritnet"
    PEREGRINE = "peregrine"


class Role(str, Enum):
    USER = "USER"
    ATTESTER = "ATTESTER"
    ADMIN = "ADMIN"


class PaymentType(str, Enum):
    SYSTEM = "system"
    USER = "user"


class SigningType(str, Enum):
    SYSTEM = "system"
    USER = "user"


class AuthorizationMode(str, Enum):
    """Who pays the fee and who authorizes the call content."""

    SYSTEM_PAYS_SYSTEM_SIGNS = "system_pays_system_signs"
    SYSTEM_PAYS_USER_SIGNS = "system_pays_user_signs"
    USER_PAYS_USER_SIGNS = "user_pays_user_signs"

    @classmethod
    def from_types(
        cls, payment_type: PaymentType, signing_type: SigningType
    ) -> AuthorizationMode:
        """Map the wire-level payer/signer pair to a mode.

        Raises ValueError for user-paid, system-signed requests.
        """
        if payment_type is PaymentType.SYSTEM:
            if signing_type is SigningType.SYSTEM:
                return cls.SYSTEM_PAYS_SYSTEM_SIGNS
            return cls.SYSTEM_PAYS_USER_SIGNS
        if signing_type is SigningType.USER:
            return cls.USER_PAYS_USER_SIGNS
        msg = "a user-paid transaction must also be signed by the user"
        raise ValueError(msg)

    @property
    def payment_type(self) -> PaymentType:
        if self is AuthorizationMode.USER_PAYS_USER_SIGNS:
            return PaymentType.USER
        return PaymentType.SYSTEM

    @property
    def signing_type(self) -> SigningType:
        if self is AuthorizationMode.SYSTEM_PAYS_SYSTEM_SIGNS:
            return SigningType.SYSTEM
        return SigningType.USER


class CamelModel(BaseModel):
    """Base model speaking camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Session handshake


class SessionRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    encryption_key_uri: str
    challenge: str


class SessionResponse(CamelModel):
    encryption_key_uri: str
    encrypted_challenge: str
    nonce: str


class VerifySessionRequest(CamelModel):
    session_request: SessionRequest
    session_response: SessionResponse
    user_did: str


class UserRecord(BaseModel):
    did: str
    roles: list[Role] = Field(default_factory=lambda: [Role.USER])
    created_at: int

    @property
    def primary_role(self) -> Role:
        return self.roles[0] if self.roles else Role.USER


class AuthenticatedUser(BaseModel):
    did: str
    roles: list[Role]


class CurrentUser(CamelModel):
    did: str
    roles: list[Role]
    primary_role: Role


class SetRolesRequest(CamelModel):
    did: str
    roles: list[Role] = Field(min_length=1)


class SessionResult(BaseModel):
    jwt: str
    user: AuthenticatedUser


class TokenPayload(BaseModel):
    did: str
    role: Role
    exp: int
    iat: int | None = None


# DID documents


class VerificationMethod(CamelModel):
    id: str
    type: str
    controller: str
    public_key_hex: str


class DidDocument(CamelModel):
    id: str
    verification_method: list[VerificationMethod] = Field(default_factory=list)
    authentication: list[str] = Field(default_factory=list)
    assertion_method: list[str] = Field(default_factory=list)
    key_agreement: list[str] = Field(default_factory=list)
    capability_delegation: list[str] = Field(default_factory=list)

    def get_verification_method(self, method_id: str) -> VerificationMethod | None:
        """Look up a verification method by full id or by fragment."""
        for vm in self.verification_method:
            if vm.id == method_id or vm.id.endswith(f"#{method_id.lstrip('#')}"):
                return vm
        return None


class ResolvedDid(BaseModel):
    document: DidDocument
    network: Network


# CTypes


class CTypeProperty(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["string", "integer", "number", "boolean", "array"] | None = None
    format: Literal["date", "time", "uri"] | None = None
    enum: list[Any] | None = None
    ref: str | None = Field(default=None, alias="$ref")
    # Constraints introduced by the v1 metaschema
    items: CTypeProperty | None = None
    min_items: int | None = Field(default=None, alias="minItems", ge=0)
    max_items: int | None = Field(default=None, alias="maxItems", ge=0)
    min_length: int | None = Field(default=None, alias="minLength", ge=0)
    max_length: int | None = Field(default=None, alias="maxLength", ge=0)
    minimum: int | float | None = None
    maximum: int | float | None = None

    @model_validator(mode="after")
    def _type_or_ref(self) -> CTypeProperty:
        if (self.type is None) == (self.ref is None):
            msg = "property needs exactly one of 'type' or '$ref'"
            raise ValueError(msg)
        if (self.type == "array") != (self.items is not None):
            msg = "'items' is required for and only allowed on array properties"
            raise ValueError(msg)
        if self.type != "array" and (
            self.min_items is not None or self.max_items is not None
        ):
            msg = "'minItems' and 'maxItems' only apply to arrays"
            raise ValueError(msg)
        return self

    def uses_v1_features(self) -> bool:
        extras = (
            self.min_items,
            self.max_items,
            self.min_length,
            self.max_length,
            self.minimum,
            self.maximum,
        )
        return self.type == "array" or any(v is not None for v in extras)


class CTypeSchema(BaseModel):
    """Structural definition of a credential type."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_uri: str = Field(default=CTYPE_SCHEMA_URI, alias="$schema")
    id: str | None = Field(default=None, alias="$id")
    title: str = Field(min_length=1)
    type: Literal["object"] = "object"
    properties: dict[str, CTypeProperty] = Field(default_factory=dict)
    additional_properties: bool | None = Field(
        default=None, alias="additionalProperties"
    )

    @field_validator("schema_uri")
    @classmethod
    def _known_metaschema(cls, value: str) -> str:
        if value not in (CTYPE_SCHEMA_URI, CTYPE_SCHEMA_URI_V1):
            msg = f"unsupported $schema {value}"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _features_match_metaschema(self) -> CTypeSchema:
        if self.schema_uri == CTYPE_SCHEMA_URI:
            for name, prop in self.properties.items():
                if prop.uses_v1_features():
                    msg = f"property {name} requires the v1 metaschema"
                    raise ValueError(msg)
        return self

    def hashable_content(self) -> dict[str, Any]:
        """The fields that define the CType identity."""
        content: dict[str, Any] = {
            "$schema": self.schema_uri,
            "properties": {
                name: prop.model_dump(by_alias=True, exclude_none=True)
                for name, prop in self.properties.items()
            },
            "title": self.title,
            "type": self.type,
        }
        if self.additional_properties is not None:
            content["additionalProperties"] = self.additional_properties
        return content


# Transactions


class PrepareCTypeRequest(CamelModel):
    ctype_schema: dict[str, Any] = Field(alias="schema")
    network: Network
    user_did: str
    user_account_address: str | None = None
    payment_type: PaymentType = PaymentType.SYSTEM
    signing_type: SigningType = Field(
        default=SigningType.USER,
        validation_alias=AliasChoices("signingType", "signerType", "signing_type"),
    )


class SubmitCTypeRequest(CamelModel):
    ctype_schema: dict[str, Any] = Field(alias="schema")
    network: Network
    user_did: str
    signed_extrinsic: str
    submitter: str | None = None


class TransactionEnvelope(CamelModel):
    extrinsic: str
    submitter: str
    ctype_id: str
    user_did: str
    network: Network
    payment_type: PaymentType
    signing_type: SigningType

    @property
    def mode(self) -> AuthorizationMode:
        return AuthorizationMode.from_types(self.payment_type, self.signing_type)


class InclusionReceipt(BaseModel):
    extrinsic_hash: str
    block_hash: str
    block_number: int


class SubmissionResult(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    block_hash: str
    block_number: int
    transaction_hash: str
    resource_hash: str


# Attestations


class AnchorRequest(CamelModel):
    claim_hash: str
    ctype_hash: str
    attester_did: str
    network: Network | None = None


class StartAttestationRequest(CamelModel):
    ctype_hash: str
    claim_contents: dict[str, Any]
    attester_did: str
    network: Network


class AttestationRecord(CamelModel):
    claim_hash: str
    ctype_hash: str
    owner: str
    delegation_id: str | None = None
    revoked: bool = False


class AttestationOutcome(CamelModel):
    attestation: AttestationRecord
    credential_hash: str
    submission: SubmissionResult


# Configuration


class NetworkSettings(BaseModel):
    network: Network
    ws_endpoint: str
    payer_mnemonic: str | None = None
    did_uri: str | None = None
