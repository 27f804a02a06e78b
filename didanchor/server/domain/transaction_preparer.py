"""CType registration transaction preparation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError
from substrateinterface.utils.ss58 import is_valid_ss58_address

from didanchor.common.crypto import SS58_FORMAT, CryptoUtils
from didanchor.common.exceptions import (
    InvalidSchema,
    MissingPayerAccount,
    ValidationError,
)
from didanchor.common.identifiers import require_full_did
from didanchor.common.models import (
    AuthorizationMode,
    CTypeSchema,
    Network,
    PaymentType,
    TransactionEnvelope,
)
from didanchor.ledger import open_connection

if TYPE_CHECKING:
    from didanchor.common.interfaces import ICustodian, ILedgerConnector


class TransactionPreparer:
    """Builds unsigned CType registration extrinsics."""

    def __init__(self, connector: ILedgerConnector, custodian: ICustodian):
        self.connector = connector
        self.custodian = custodian
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def normalize_schema(schema: dict[str, Any]) -> CTypeSchema:
        """Fill defaults and validate the structure of a CType schema."""
        try:
            return CTypeSchema.model_validate(schema)
        except PydanticValidationError as err:
            details = "; ".join(
                f"{'.'.join(str(p) for p in e['loc']) or 'schema'}: {e['msg']}"
                for e in err.errors()
            )
            msg = f"invalid CType schema: {details}"
            raise InvalidSchema(msg) from err

    def resolve_submitter(
        self,
        network: Network,
        mode: AuthorizationMode,
        user_account_address: str | None,
    ) -> str:
        """The account paying the fee for the given mode."""
        if mode.payment_type is PaymentType.SYSTEM:
            return self.custodian.payer_address(network)
        if not user_account_address:
            raise MissingPayerAccount
        if not is_valid_ss58_address(
            user_account_address, valid_ss58_format=SS58_FORMAT
        ):
            msg = f"invalid account address {user_account_address}"
            raise ValidationError(msg)
        return user_account_address

    def prepare(  # noqa: PLR0913
        self,
        schema: dict[str, Any],
        network: Network,
        owner_did: str,
        mode: AuthorizationMode,
        user_account_address: str | None = None,
    ) -> TransactionEnvelope:
        """Validate everything locally, then build the unsigned extrinsic."""
        network = Network(network)
        owner = require_full_did(owner_did)
        ctype = self.normalize_schema(schema)
        ctype_id = CryptoUtils.ctype_id_for_schema(ctype)
        submitter = self.resolve_submitter(network, mode, user_account_address)

        with open_connection(self.connector, network) as connection:
            call = connection.compose_ctype_registration(
                CryptoUtils.serialize_ctype(ctype)
            )
            extrinsic = connection.encode_unsigned(call)

        self.logger.info(
            "Prepared %s on %s for %s (%s)",
            ctype_id,
            network.value,
            owner.uri,
            mode.value,
        )
        return TransactionEnvelope(
            extrinsic=extrinsic,
            submitter=submitter,
            ctype_id=ctype_id,
            user_did=owner.uri,
            network=network,
            payment_type=mode.payment_type,
            signing_type=mode.signing_type,
        )
