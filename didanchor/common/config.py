"""
Configuration settings for the DID session and anchoring service.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, cast

from cryptography.hazmat.primitives import serialization

from didanchor.common.models import Network, NetworkSettings, Role

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.ed25519 import (
        Ed25519PrivateKey,
        Ed25519PublicKey,
    )


class Config:
    """Central configuration class for all system settings."""

    def __init__(self) -> None:
        # Session and security settings
        self.TOKEN_TTL: int = 15 * 60  # Access token lifetime in seconds
        self.TOKEN_ALGORITHM: str = "EdDSA"
        self.CHALLENGE_BYTES: int = 32
        self.CHALLENGE_TTL: int = 5 * 60  # Unanswered challenges expire
        self.MAX_PENDING_CHALLENGES: int = 10_000  # Bound memory under floods
        self.DEFAULT_ROLE: Role = Role.USER

        # Ledger settings
        self.FINALIZATION_TIMEOUT: float = 60.0  # Upper bound on block inclusion wait
        self.RESOLUTION_ORDER: tuple[Network, ...] = (
            Network.PEREGRINE,
            Network.SPIRITNET,
        )
        self.DAPP_NAME: str = os.getenv("DAPP_NAME", "didanchor")
        self.DAPP_DID_URI: str | None = os.getenv("DAPP_DID_URI")
        self.DAPP_ACCOUNT_MNEMONIC: str | None = os.getenv("DAPP_ACCOUNT_MNEMONIC")
        self.DEFAULT_NETWORK: Network = Network(os.getenv("KILT_NETWORK", "spiritnet"))
        self.NETWORKS: dict[Network, NetworkSettings] = {
            Network.SPIRITNET: NetworkSettings(
                network=Network.SPIRITNET,
                ws_endpoint=os.getenv("SPIRITNET_ENDPOINT", "wss://spiritnet.kilt.io"),
                payer_mnemonic=os.getenv("SPIRITNET_SECRET_PAYER_MNEMONIC"),
                did_uri=self.DAPP_DID_URI,
            ),
            Network.PEREGRINE: NetworkSettings(
                network=Network.PEREGRINE,
                ws_endpoint=os.getenv("PEREGRINE_ENDPOINT", "wss://peregrine.kilt.io"),
                payer_mnemonic=os.getenv("PEREGRINE_SECRET_PAYER_MNEMONIC"),
                did_uri=self.DAPP_DID_URI,
            ),
        }

        # Server settings
        self.SERVER_HOST: str = os.getenv("SERVER_HOST", "127.0.0.1")
        self.SERVER_PORT: int = int(os.getenv("SERVER_PORT", "4000"))
        self.SERVER_URL: str = f"http://{self.SERVER_HOST}:{self.SERVER_PORT}"
        self.CORS_ORIGINS: list[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGIN", "http://localhost:3000").split(",")
            if origin.strip()
        ]

        # File paths
        self.BASE_DIR: Path = Path(__file__).parent.parent
        self.DATA_DIR: Path = Path(
            os.getenv("DIDANCHOR_DATA_DIR", str(self.BASE_DIR / "data"))
        )
        self.KEYS_DIR: Path = Path(
            os.getenv("DIDANCHOR_KEYS_DIR", str(self.BASE_DIR / "server"))
        )
        self.TOKEN_PUBLIC_KEY_PATH: Path = self.KEYS_DIR / "token_public.key"
        self.TOKEN_PRIVATE_KEY_PATH: Path = self.KEYS_DIR / "token_private.key"
        self.USERS_FILE_PATH: Path = self.DATA_DIR / "users.json"

        # Logging
        self.LOG_LEVEL: int = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO"))

    def network_settings(self, network: Network | str) -> NetworkSettings:
        return self.NETWORKS[Network(network)]

    def get_token_keys(self) -> tuple[Ed25519PublicKey, Ed25519PrivateKey]:
        """Load token signing keys from files."""
        try:
            with self.TOKEN_PUBLIC_KEY_PATH.open("rb") as f:
                token_pub = cast(
                    "Ed25519PublicKey", serialization.load_pem_public_key(f.read())
                )
            with self.TOKEN_PRIVATE_KEY_PATH.open("rb") as f:
                token_priv = cast(
                    "Ed25519PrivateKey",
                    serialization.load_pem_private_key(f.read(), None),
                )
        except FileNotFoundError as err:
            msg = (
                f"Token keys not found at {self.TOKEN_PUBLIC_KEY_PATH} and "
                f"{self.TOKEN_PRIVATE_KEY_PATH}. Run 'didanchor keygen' to generate them."
            )
            raise ValueError(msg) from err

        return token_pub, token_priv
