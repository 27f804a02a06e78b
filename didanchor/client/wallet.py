"""
Holder-side wallet answering session challenges.
"""

from __future__ import annotations

from typing import Union

from nacl.public import PrivateKey, PublicKey

from didanchor.common.crypto import CryptoUtils, from_hex, to_hex
from didanchor.common.identifiers import parse_did
from didanchor.common.models import SessionRequest, SessionResponse


class Wallet:
    """Holds a DID key agreement secret, like a browser wallet extension."""

    def __init__(self, key_uri: str, secret: PrivateKey):
        parsed = parse_did(key_uri)
        if parsed.key_uri is None:
            msg = f"{key_uri} is not a key URI"
            raise ValueError(msg)
        self.key_uri = parsed.key_uri
        self.did = parsed.uri
        self.secret = secret

    @classmethod
    def from_mnemonic(cls, key_uri: str, mnemonic: str) -> Wallet:
        """Wallet whose key agreement secret is derived from a mnemonic."""
        return cls(key_uri, CryptoUtils.key_agreement_secret(mnemonic))

    @property
    def public_key(self) -> PublicKey:
        return self.secret.public_key

    @property
    def public_key_hex(self) -> str:
        return to_hex(bytes(self.public_key))

    def answer(
        self,
        session_request: SessionRequest,
        app_public_key: Union[PublicKey, str],
    ) -> SessionResponse:
        """Encrypt the challenge for the application's key agreement key."""
        if isinstance(app_public_key, str):
            app_public_key = PublicKey(from_hex(app_public_key))
        ciphertext, nonce = CryptoUtils.seal_challenge(
            session_request.challenge, self.secret, app_public_key
        )
        return SessionResponse(
            encryption_key_uri=self.key_uri,
            encrypted_challenge=ciphertext,
            nonce=nonce,
        )
