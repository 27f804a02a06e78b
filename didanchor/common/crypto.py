"""Common cryptographic utilities.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import uuid
from typing import Any

from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from substrateinterface import Keypair, KeypairType

from didanchor.common.models import CTYPE_ID_PREFIX, CTypeSchema

SS58_FORMAT = 38
KEY_AGREEMENT_PATH = "//did//keyAgreement//0"
ASSERTION_PATH = "//did//attestation//0"


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def from_hex(value: str) -> bytes:
    return bytes.fromhex(strip_hex_prefix(value))


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


class CryptoUtils:
    """Utility class for cryptographic operations."""

    @staticmethod
    def generate_challenge(num_bytes: int = 32) -> str:
        """Fresh random challenge, 0x-prefixed hex."""
        return "0x" + secrets.token_hex(num_bytes)

    @staticmethod
    def blake2_256(data: bytes) -> bytes:
        return hashlib.blake2b(data, digest_size=32).digest()

    @staticmethod
    def encode_object_as_str(obj: Any) -> str:
        """Canonical JSON: sorted keys, no whitespace."""
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @staticmethod
    def serialize_ctype(schema: CTypeSchema) -> str:
        return CryptoUtils.encode_object_as_str(schema.hashable_content())

    @staticmethod
    def ctype_id_for_schema(schema: CTypeSchema) -> str:
        """Content-addressed CType id."""
        digest = CryptoUtils.blake2_256(CryptoUtils.serialize_ctype(schema).encode())
        return CTYPE_ID_PREFIX + to_hex(digest)

    @staticmethod
    def ctype_id_to_hash(ctype_id: str) -> str:
        if ctype_id.startswith(CTYPE_ID_PREFIX):
            return ctype_id[len(CTYPE_ID_PREFIX) :]
        return ctype_id

    @staticmethod
    def extrinsic_hash(extrinsic_hex: str) -> str:
        return to_hex(CryptoUtils.blake2_256(from_hex(extrinsic_hex)))

    @staticmethod
    def keypair_from_uri(suri: str) -> Keypair:
        """sr25519 keypair for a mnemonic or secret URI, KILT address format."""
        return Keypair.create_from_uri(
            suri, ss58_format=SS58_FORMAT, crypto_type=KeypairType.SR25519
        )

    @staticmethod
    def assertion_keypair(mnemonic: str) -> Keypair:
        return CryptoUtils.keypair_from_uri(mnemonic + ASSERTION_PATH)

    @staticmethod
    def key_agreement_secret(mnemonic: str) -> PrivateKey:
        """x25519 secret of the DID key-agreement key derived from a mnemonic."""
        derived = CryptoUtils.keypair_from_uri(mnemonic + KEY_AGREEMENT_PATH)
        return PrivateKey(CryptoUtils.blake2_256(derived.private_key))

    @staticmethod
    def seal_challenge(
        challenge: str, sender: PrivateKey, recipient: PublicKey
    ) -> tuple[str, str]:
        """Encrypt challenge bytes for the recipient. Returns (ciphertext, nonce)."""
        encrypted = Box(sender, recipient).encrypt(from_hex(challenge))
        return to_hex(encrypted.ciphertext), to_hex(encrypted.nonce)

    @staticmethod
    def open_challenge(
        ciphertext: str, nonce: str, recipient: PrivateKey, sender: PublicKey
    ) -> bytes | None:
        """Decrypt a sealed challenge, None when authentication fails."""
        try:
            return Box(recipient, sender).decrypt(from_hex(ciphertext), from_hex(nonce))
        except (CryptoError, ValueError):
            return None

    @staticmethod
    def constant_time_equals(a: bytes, b: bytes) -> bool:
        return hmac.compare_digest(a, b)

    @staticmethod
    def hash_statements(
        ctype_id: str, contents: dict[str, Any], nonces: dict[str, str] | None = None
    ) -> tuple[list[str], dict[str, str]]:
        """Salted hashes of the claim statements.

        Returns the sorted hashes and the nonce map keyed by statement digest.
        """
        hashes: list[str] = []
        nonce_map: dict[str, str] = {}
        for key, value in sorted(contents.items()):
            statement = CryptoUtils.encode_object_as_str({f"{ctype_id}#{key}": value})
            digest = to_hex(CryptoUtils.blake2_256(statement.encode()))
            nonce = (nonces or {}).get(digest) or str(uuid.uuid4())
            nonce_map[digest] = nonce
            salted = CryptoUtils.blake2_256(nonce.encode() + from_hex(digest))
            hashes.append(to_hex(salted))
        return sorted(hashes), nonce_map

    @staticmethod
    def calculate_root_hash(claim_hashes: list[str], delegation_id: str | None = None) -> str:
        """Credential root hash over the claim hashes and optional delegation."""
        parts = [from_hex(h) for h in claim_hashes]
        if delegation_id:
            parts.append(from_hex(delegation_id))
        return to_hex(CryptoUtils.blake2_256(b"".join(parts)))
