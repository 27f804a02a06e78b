"""
Login example for AnchorClient.

This example answers the server's session challenge with a wallet derived
from a mnemonic, then reads the authenticated user and prepares a CType.

Environment:
    HOLDER_KEY_URI   key agreement key URI of the holder, did:kilt:...#0x...
    HOLDER_MNEMONIC  mnemonic the holder's DID keys are derived from
    APP_PUBLIC_KEY   hex x25519 public key of the application's key agreement key
"""

import logging
import os
import sys

from didanchor.client import AnchorClient, Wallet
from didanchor.common.models import Network, TransactionEnvelope


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    try:
        wallet = Wallet.from_mnemonic(
            os.environ["HOLDER_KEY_URI"], os.environ["HOLDER_MNEMONIC"]
        )
        client = AnchorClient()

        result = client.login(wallet, os.environ["APP_PUBLIC_KEY"])
        logger.info("Logged in as %s", result.user.did)

        me = client.me()
        logger.info("Roles: %s", ", ".join(r.value for r in me.roles))

        prepared = client.prepare_ctype(
            {"title": "Email", "properties": {"email": {"type": "string"}}},
            Network.PEREGRINE,
            wallet.did,
        )
        if isinstance(prepared, TransactionEnvelope):
            logger.info(
                "Sign %s with account %s", prepared.ctype_id, prepared.submitter
            )
        else:
            logger.info("Registered in block %s", prepared.block_number)
    except Exception:
        logger.exception("Error")
        sys.exit(1)


if __name__ == "__main__":
    main()
