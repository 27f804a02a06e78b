"""Submission of signed extrinsics and custodial signing.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable

from didanchor.common.crypto import CryptoUtils
from didanchor.common.exceptions import InvalidAuthorizationMode, ValidationError
from didanchor.common.models import AuthorizationMode, Network, SubmissionResult
from didanchor.ledger import open_connection

if TYPE_CHECKING:
    from didanchor.common.interfaces import (
        ICustodian,
        ILedgerConnection,
        ILedgerConnector,
    )
    from didanchor.common.models import InclusionReceipt, TransactionEnvelope


class TransactionSubmitter:
    """Submits extrinsics and waits for block inclusion.

    Submissions from the same account are serialized so nonces are taken in
    order; different accounts proceed in parallel.
    """

    def __init__(
        self,
        connector: ILedgerConnector,
        custodian: ICustodian,
        timeout: float,
    ):
        self.connector = connector
        self.custodian = custodian
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._account_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _account_lock(self, account: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._account_locks.get(account)
            if lock is None:
                lock = self._account_locks[account] = threading.Lock()
            return lock

    def submit(
        self,
        signed_extrinsic: str,
        network: Network,
        submitter: str,
        resource_hash: str,
        expected_ctype: str | None = None,
    ) -> SubmissionResult:
        """Submit an extrinsic that was signed elsewhere.

        With expected_ctype set, the extrinsic must register exactly that CType.
        """
        network = Network(network)
        if not signed_extrinsic:
            msg = "signed extrinsic is empty"
            raise ValidationError(msg)
        with self._account_lock(submitter):
            with open_connection(self.connector, network) as connection:
                if expected_ctype is not None:
                    registered = connection.extract_ctype(signed_extrinsic)
                    if registered != expected_ctype:
                        msg = "signed extrinsic does not register the given schema"
                        raise ValidationError(msg)
                receipt = connection.submit_and_watch(signed_extrinsic, self.timeout)
        return self._result(receipt, resource_hash, network)

    def sign_and_submit(self, envelope: TransactionEnvelope) -> SubmissionResult:
        """Sign a prepared envelope with the custodial payer key and submit it."""
        if envelope.mode is not AuthorizationMode.SYSTEM_PAYS_SYSTEM_SIGNS:
            msg = f"envelope in mode {envelope.mode.value} must be signed by the user"
            raise InvalidAuthorizationMode(msg)
        return self.sign_and_submit_call(
            envelope.network,
            lambda connection: connection.decode_call(envelope.extrinsic),
            CryptoUtils.ctype_id_to_hash(envelope.ctype_id),
        )

    def sign_and_submit_call(
        self,
        network: Network,
        build_call: Callable[[ILedgerConnection], Any],
        resource_hash: str,
    ) -> SubmissionResult:
        """Build a call on a fresh connection, sign it as the system payer, submit.

        The call is built under the payer's lock so the nonce read at signing
        time is not raced by another submission from the same account.
        """
        network = Network(network)
        keypair = self.custodian.payer_keypair(network)
        with self._account_lock(keypair.ss58_address):
            with open_connection(self.connector, network) as connection:
                call = build_call(connection)
                signed = connection.sign(call, keypair)
                receipt = connection.submit_and_watch(signed, self.timeout)
        return self._result(receipt, resource_hash, network)

    def _result(
        self, receipt: InclusionReceipt, resource_hash: str, network: Network
    ) -> SubmissionResult:
        self.logger.info(
            "Extrinsic %s included on %s in block %s (#%s)",
            receipt.extrinsic_hash,
            network.value,
            receipt.block_hash,
            receipt.block_number,
        )
        return SubmissionResult(
            block_hash=receipt.block_hash,
            block_number=receipt.block_number,
            transaction_hash=receipt.extrinsic_hash,
            resource_hash=resource_hash,
        )
