"""
Custodial keys held by the application.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from didanchor.common.crypto import CryptoUtils
from didanchor.common.exceptions import (
    CustodialKeyUnset,
    EncryptionKeyUnset,
    SignerUnavailable,
)
from didanchor.common.models import Network

if TYPE_CHECKING:
    from nacl.public import PrivateKey
    from substrateinterface import Keypair

    from didanchor.common.config import Config


class Custodian:
    """Derives the payer and DID keys from the configured mnemonics."""

    def __init__(self, config: Config):
        self.config = config
        self._payers: dict[Network, Keypair] = {}

    def payer_keypair(self, network: Network) -> Keypair:
        network = Network(network)
        if network not in self._payers:
            mnemonic = self.config.network_settings(network).payer_mnemonic
            if not mnemonic:
                raise CustodialKeyUnset(network.value)
            self._payers[network] = CryptoUtils.keypair_from_uri(mnemonic)
        return self._payers[network]

    def payer_address(self, network: Network) -> str:
        return self.payer_keypair(network).ss58_address

    def assertion_keypair(self) -> Keypair:
        if not self.config.DAPP_ACCOUNT_MNEMONIC:
            msg = "DAPP_ACCOUNT_MNEMONIC is not configured, cannot sign attestations"
            raise SignerUnavailable(msg)
        return CryptoUtils.assertion_keypair(self.config.DAPP_ACCOUNT_MNEMONIC)

    def key_agreement_secret(self) -> PrivateKey:
        if not self.config.DAPP_ACCOUNT_MNEMONIC:
            raise EncryptionKeyUnset
        return CryptoUtils.key_agreement_secret(self.config.DAPP_ACCOUNT_MNEMONIC)
