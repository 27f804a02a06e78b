"""
KILT ledger adapter built on substrate-interface.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from scalecodec.base import ScaleBytes
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException
from substrateinterface import ExtrinsicReceipt, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException
from substrateinterface.utils.ss58 import ss58_decode
from websocket import WebSocketException, WebSocketTimeoutException

from didanchor.common.crypto import SS58_FORMAT, CryptoUtils, from_hex, to_hex
from didanchor.common.exceptions import (
    DispatchError,
    IdentifierUnresolvable,
    ServiceError,
    SubmissionTimeout,
    SubmissionUnreachable,
    ValidationError,
)
from didanchor.common.models import (
    DidDocument,
    InclusionReceipt,
    Network,
    VerificationMethod,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from substrateinterface import Keypair

    from didanchor.common.config import Config
    from didanchor.common.identifiers import Did

KEY_TYPES = {
    "Ed25519": "Ed25519VerificationKey2018",
    "Sr25519": "Sr25519VerificationKey2020",
    "Ecdsa": "EcdsaSecp256k1VerificationKey2019",
    "X25519": "X25519KeyAgreementKey2019",
}
# Transaction status values after which the extrinsic can never be included
REJECTED_STATUSES = ("dropped", "invalid", "usurped")
INCLUDED_STATUSES = ("inBlock", "finalized")
DID_CALL = ("Did", "submit_did_call")
CTYPE_ADD = ("Ctype", "add")
BLOCK_NUMBER_BYTES = 8
TX_COUNTER_BYTES = 8


def _call_args(call: dict[str, Any]) -> dict[str, Any]:
    return {arg["name"]: arg["value"] for arg in call["call_args"]}


def _as_mapping(value: Any) -> dict[str, Any]:
    """Decoded BTreeMap values come back either as dicts or as pair lists."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return {key: item for key, item in value}


class SubstrateConnection:
    """One websocket session with a KILT node."""

    def __init__(self, substrate: SubstrateInterface, network: Network):
        self.substrate = substrate
        self.network = network
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def _ledger_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except ServiceError:
            raise
        except SubstrateRequestException as err:
            raise DispatchError(str(err)) from err
        except WebSocketTimeoutException as err:
            msg = f"{action} on {self.network.value} timed out"
            raise SubmissionTimeout(msg) from err
        except (WebSocketException, OSError) as err:
            msg = f"{action} on {self.network.value} failed: {err}"
            raise SubmissionUnreachable(msg) from err

    def _did_details(self, did: Did) -> dict[str, Any] | None:
        with self._ledger_errors("DID query"):
            result = self.substrate.query("Did", "Did", [did.address])
        return result.value if result is not None else None

    def query_did(self, did: Did) -> DidDocument | None:
        details = self._did_details(did)
        if details is None:
            return None
        return self._to_document(did, details)

    @staticmethod
    def _to_document(did: Did, details: dict[str, Any]) -> DidDocument:
        """Convert on-chain DID details to a DID document."""

        def key_id(key_hash: str) -> str:
            return f"{did.uri}#{key_hash}"

        methods = []
        for key_hash, key_details in _as_mapping(details["public_keys"]).items():
            key_type, public_key = SubstrateConnection._decode_public_key(
                key_details["key"]
            )
            methods.append(
                VerificationMethod(
                    id=key_id(key_hash),
                    type=key_type,
                    controller=did.uri,
                    public_key_hex=public_key,
                )
            )

        attestation_key = details.get("attestation_key")
        delegation_key = details.get("delegation_key")
        return DidDocument(
            id=did.uri,
            verification_method=methods,
            authentication=[key_id(details["authentication_key"])],
            assertion_method=[key_id(attestation_key)] if attestation_key else [],
            capability_delegation=[key_id(delegation_key)] if delegation_key else [],
            key_agreement=[
                key_id(k) for k in details.get("key_agreement_keys") or []
            ],
        )

    @staticmethod
    def _decode_public_key(value: dict[str, Any]) -> tuple[str, str]:
        # {"PublicVerificationKey": {"Sr25519": "0x.."}}
        (inner,) = value.values()
        ((curve, public_key),) = inner.items()
        if curve not in KEY_TYPES:
            msg = f"unknown key type {curve}"
            raise ValueError(msg)
        return KEY_TYPES[curve], public_key

    def compose_ctype_registration(self, ctype: str) -> Any:
        with self._ledger_errors("composing Ctype.add"):
            return self.substrate.compose_call(
                call_module="Ctype",
                call_function="add",
                call_params={"ctype": to_hex(ctype.encode())},
            )

    def compose_attestation(self, claim_hash: str, ctype_hash: str) -> Any:
        with self._ledger_errors("composing Attestation.add"):
            return self.substrate.compose_call(
                call_module="Attestation",
                call_function="add",
                call_params={
                    "claim_hash": claim_hash,
                    "ctype_hash": ctype_hash,
                    "authorization": None,
                },
            )

    def authorize_did_call(
        self, call: Any, did: Did, submitter: str, signer: Keypair
    ) -> Any:
        """Wrap a call in Did.submit_did_call signed by the DID key."""
        details = self._did_details(did)
        if details is None:
            raise IdentifierUnresolvable(did.uri, [self.network.value])
        tx_counter = int(details["last_tx_counter"]) + 1

        with self._ledger_errors("DID authorization"):
            block_number = self.substrate.get_block_number(
                self.substrate.get_chain_head()
            )
            operation = (
                from_hex(ss58_decode(did.address))
                + tx_counter.to_bytes(TX_COUNTER_BYTES, "little")
                + bytes(call.data.data)
                + block_number.to_bytes(BLOCK_NUMBER_BYTES, "little")
                + from_hex(ss58_decode(submitter))
            )
            signature = signer.sign(operation)
            return self.substrate.compose_call(
                call_module="Did",
                call_function="submit_did_call",
                call_params={
                    "did_call": {
                        "did": did.address,
                        "tx_counter": tx_counter,
                        "call": call.value,
                        "block_number": block_number,
                        "submitter": submitter,
                    },
                    "signature": {"Sr25519": to_hex(signature)},
                },
            )

    def encode_unsigned(self, call: Any) -> str:
        with self._ledger_errors("encoding extrinsic"):
            return self.substrate.create_unsigned_extrinsic(call).data.to_hex()

    def decode_call(self, extrinsic: str) -> Any:
        with self._ledger_errors("decoding extrinsic"):
            decoded = self.substrate.create_scale_object(
                "Extrinsic", data=ScaleBytes(extrinsic)
            )
            decoded.decode()
            call = decoded.value["call"]
            return self.substrate.compose_call(
                call_module=call["call_module"],
                call_function=call["call_function"],
                call_params=_call_args(call),
            )

    def extract_ctype(self, extrinsic: str) -> str | None:
        """The CType an extrinsic registers, looking through DID-authorized calls."""
        try:
            decoded = self.substrate.create_scale_object(
                "Extrinsic", data=ScaleBytes(extrinsic)
            )
            decoded.decode()
            call = decoded.value["call"]
            while (call["call_module"], call["call_function"]) == DID_CALL:
                call = _call_args(call)["did_call"]["call"]
            if (call["call_module"], call["call_function"]) != CTYPE_ADD:
                return None
            ctype = _call_args(call)["ctype"]
            return from_hex(ctype).decode() if ctype.startswith("0x") else ctype
        except (
            ValueError,
            KeyError,
            IndexError,
            TypeError,
            RemainingScaleBytesNotEmptyException,
        ) as err:
            msg = "signed extrinsic cannot be decoded"
            raise ValidationError(msg) from err

    def ctype_exists(self, ctype_hash: str) -> bool:
        with self._ledger_errors("CType query"):
            result = self.substrate.query("Ctype", "Ctypes", [ctype_hash])
        return result is not None and result.value is not None

    def sign(self, call: Any, keypair: Keypair) -> str:
        with self._ledger_errors("signing extrinsic"):
            extrinsic = self.substrate.create_signed_extrinsic(
                call=call, keypair=keypair
            )
            return extrinsic.data.to_hex()

    def submit_and_watch(self, extrinsic: str, timeout: float) -> InclusionReceipt:
        """Submit and block until the extrinsic is in a block or the deadline passes."""
        extrinsic_hash = CryptoUtils.extrinsic_hash(extrinsic)
        deadline = time.monotonic() + timeout

        def on_status(message: dict, update_nr: int, subscription_id: str) -> Any:
            status = message["params"]["result"]
            self.logger.debug("Extrinsic %s status: %s", extrinsic_hash, status)
            name = status if isinstance(status, str) else next(iter(status))
            if name in INCLUDED_STATUSES:
                return status[name]
            if name in REJECTED_STATUSES:
                msg = f"extrinsic {name}"
                raise DispatchError(msg)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                msg = f"extrinsic {extrinsic_hash} not included within {timeout}s"
                raise SubmissionTimeout(msg)
            if self.substrate.websocket is not None:
                self.substrate.websocket.settimeout(remaining)
            return None

        with self._ledger_errors("submission"):
            if self.substrate.websocket is not None:
                self.substrate.websocket.settimeout(timeout)
            block_hash = self.substrate.rpc_request(
                "author_submitAndWatchExtrinsic", [extrinsic], result_handler=on_status
            )
            receipt = ExtrinsicReceipt(
                substrate=self.substrate,
                extrinsic_hash=extrinsic_hash,
                block_hash=block_hash,
            )
            if not receipt.is_success:
                raise DispatchError(self._describe_error(receipt.error_message))
            block_number = receipt.block_number

        return InclusionReceipt(
            extrinsic_hash=extrinsic_hash,
            block_hash=block_hash,
            block_number=block_number,
        )

    @staticmethod
    def _describe_error(error: dict[str, Any] | None) -> str:
        if not error:
            return "unknown dispatch error"
        docs = " ".join(error.get("docs") or [])
        name = error.get("name") or error.get("type") or "DispatchError"
        return f"{name}: {docs}" if docs else name

    def close(self) -> None:
        self.substrate.close()


class SubstrateConnector:
    """Opens websocket connections to the configured KILT networks."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def connect(self, network: Network) -> SubstrateConnection:
        settings = self.config.network_settings(network)
        self.logger.debug("Connecting to %s at %s", network.value, settings.ws_endpoint)
        try:
            substrate = SubstrateInterface(
                url=settings.ws_endpoint, ss58_format=SS58_FORMAT
            )
        except (WebSocketException, OSError) as err:
            msg = f"cannot reach {network.value} node at {settings.ws_endpoint}"
            raise SubmissionUnreachable(msg) from err
        return SubstrateConnection(substrate, Network(network))
