"""
Key generator for the Ed25519 token signing keys.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from didanchor.common.config import Config

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class KeyGenerator:
    """Creates the key pair that signs and verifies access tokens."""

    def __init__(self, keys_dir: Path | None = None):
        config = Config()
        self.keys_dir = keys_dir or config.KEYS_DIR

    @property
    def private_path(self) -> Path:
        return self.keys_dir / "token_private.key"

    @property
    def public_path(self) -> Path:
        return self.keys_dir / "token_public.key"

    def generate_keys(self) -> tuple[Path, Path]:
        """Generate and save the token keys, returning (private, public) paths."""
        logger.info("Generating Ed25519 token signing keys...")

        private_key = Ed25519PrivateKey.generate()
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        self.keys_dir.mkdir(parents=True, exist_ok=True)
        self.private_path.write_bytes(private_pem)
        self.private_path.chmod(0o600)
        self.public_path.write_bytes(public_pem)

        logger.info("Private key: %s", self.private_path)
        logger.info("Public key: %s", self.public_path)
        return self.private_path, self.public_path
