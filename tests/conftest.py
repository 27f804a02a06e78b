import json
from pathlib import Path
from typing import Any

import pytest
import requests
from substrateinterface import Keypair, KeypairType

from didanchor.common.config import Config
from didanchor.common.crypto import SS58_FORMAT, CryptoUtils, from_hex, to_hex
from didanchor.common.exceptions import (
    DispatchError,
    SubmissionUnreachable,
    ValidationError,
)
from didanchor.common.models import (
    DidDocument,
    InclusionReceipt,
    Network,
    VerificationMethod,
)
from didanchor.server.keygen import KeyGenerator

APP_MNEMONIC = "//Alice"
PEREGRINE_PAYER = "//Bob"
SPIRITNET_PAYER = "//Charlie"
HOLDER_MNEMONIC = "//Dave"


def address_of(suri: str) -> str:
    return Keypair.create_from_uri(
        suri, ss58_format=SS58_FORMAT, crypto_type=KeypairType.SR25519
    ).ss58_address


def did_of(suri: str) -> str:
    return f"did:kilt:{address_of(suri)}"


APP_DID = did_of(APP_MNEMONIC)
HOLDER_DID = did_of(HOLDER_MNEMONIC)
OTHER_DID = did_of("//Eve")
LIGHT_DID = "did:kilt:light:004rsmGZ1WMSuWpNAKEmrqaojvNHMNaXz3nF9GNyBnHktnFaqGtB"

KEY_AGREEMENT_ID = "0x" + "aa" * 32
ASSERTION_ID = "0x" + "bb" * 32
AUTHENTICATION_ID = "0x" + "cc" * 32


def make_document(
    did: str,
    key_agreement_pub: str | None = None,
    assertion_pub: str | None = None,
) -> DidDocument:
    """DID document with an authentication key and optional extra keys."""
    methods = [
        VerificationMethod(
            id=f"{did}#{AUTHENTICATION_ID}",
            type="Sr25519VerificationKey2020",
            controller=did,
            public_key_hex="0x" + "11" * 32,
        )
    ]
    key_agreement: list[str] = []
    assertion: list[str] = []
    if key_agreement_pub:
        methods.append(
            VerificationMethod(
                id=f"{did}#{KEY_AGREEMENT_ID}",
                type="X25519KeyAgreementKey2019",
                controller=did,
                public_key_hex=key_agreement_pub,
            )
        )
        key_agreement.append(f"{did}#{KEY_AGREEMENT_ID}")
    if assertion_pub:
        methods.append(
            VerificationMethod(
                id=f"{did}#{ASSERTION_ID}",
                type="Sr25519VerificationKey2020",
                controller=did,
                public_key_hex=assertion_pub,
            )
        )
        assertion.append(f"{did}#{ASSERTION_ID}")
    return DidDocument(
        id=did,
        verification_method=methods,
        authentication=[f"{did}#{AUTHENTICATION_ID}"],
        assertion_method=assertion,
        key_agreement=key_agreement,
    )


def app_document() -> DidDocument:
    return make_document(
        APP_DID,
        key_agreement_pub=to_hex(
            bytes(CryptoUtils.key_agreement_secret(APP_MNEMONIC).public_key)
        ),
        assertion_pub=to_hex(CryptoUtils.assertion_keypair(APP_MNEMONIC).public_key),
    )


def holder_document() -> DidDocument:
    return make_document(
        HOLDER_DID,
        key_agreement_pub=to_hex(
            bytes(CryptoUtils.key_agreement_secret(HOLDER_MNEMONIC).public_key)
        ),
    )


def _encode(obj: Any) -> str:
    return to_hex(json.dumps(obj).encode())


def _decode(extrinsic: str) -> Any:
    return json.loads(from_hex(extrinsic))


class FakeLedger:
    """In-memory stand-in for the ledger networks."""

    def __init__(self) -> None:
        self.documents: dict[Network, dict[str, DidDocument]] = {
            n: {} for n in Network
        }
        self.ctypes: dict[Network, set[str]] = {n: set() for n in Network}
        self.attestations: dict[Network, dict[str, str]] = {n: {} for n in Network}
        self.unreachable: set[Network] = set()
        self.opened: list[Network] = []
        self.closed = 0
        self.submissions: list[dict[str, Any]] = []
        self.block_number = 100
        self.fail_submission_with: Exception | None = None

    def add_document(self, network: Network, document: DidDocument) -> None:
        self.documents[network][document.id] = document

    def connect(self, network: Network) -> "FakeConnection":
        network = Network(network)
        if network in self.unreachable:
            msg = f"{network.value} node is down"
            raise SubmissionUnreachable(msg)
        self.opened.append(network)
        return FakeConnection(self, network)

    @property
    def open_connections(self) -> int:
        return len(self.opened) - self.closed


class FakeConnection:
    def __init__(self, ledger: FakeLedger, network: Network):
        self.ledger = ledger
        self.network = network

    def query_did(self, did: Any) -> DidDocument | None:
        return self.ledger.documents[self.network].get(did.uri)

    def compose_ctype_registration(self, ctype: str) -> Any:
        return ["Ctype.add", ctype]

    def compose_attestation(self, claim_hash: str, ctype_hash: str) -> Any:
        return ["Attestation.add", claim_hash, ctype_hash]

    def authorize_did_call(
        self, call: Any, did: Any, submitter: str, signer: Keypair
    ) -> Any:
        return ["Did.submit_did_call", call, did.uri, submitter, signer.ss58_address]

    def encode_unsigned(self, call: Any) -> str:
        return _encode({"call": call})

    def decode_call(self, extrinsic: str) -> Any:
        return _decode(extrinsic)["call"]

    def extract_ctype(self, extrinsic: str) -> str | None:
        try:
            call = _decode(extrinsic)["call"]
        except ValueError as err:
            msg = "signed extrinsic cannot be decoded"
            raise ValidationError(msg) from err
        while call[0] == "Did.submit_did_call":
            call = call[1]
        return call[1] if call[0] == "Ctype.add" else None

    def ctype_exists(self, ctype_hash: str) -> bool:
        return ctype_hash in self.ledger.ctypes[self.network]

    def sign(self, call: Any, keypair: Keypair) -> str:
        return _encode({"call": call, "signer": keypair.ss58_address})

    def submit_and_watch(self, extrinsic: str, timeout: float) -> InclusionReceipt:
        if self.ledger.fail_submission_with is not None:
            raise self.ledger.fail_submission_with
        body = _decode(extrinsic)
        call = body["call"]
        if call[0] == "Did.submit_did_call":
            call = call[1]
        if call[0] == "Ctype.add":
            ctype_hash = to_hex(CryptoUtils.blake2_256(call[1].encode()))
            if ctype_hash in self.ledger.ctypes[self.network]:
                msg = "Ctype.AlreadyExists"
                raise DispatchError(msg)
            self.ledger.ctypes[self.network].add(ctype_hash)
        elif call[0] == "Attestation.add":
            if call[1] in self.ledger.attestations[self.network]:
                msg = "Attestation.AlreadyAttested"
                raise DispatchError(msg)
            self.ledger.attestations[self.network][call[1]] = call[2]

        self.ledger.block_number += 1
        self.ledger.submissions.append(
            {"network": self.network, "body": body, "timeout": timeout}
        )
        return InclusionReceipt(
            extrinsic_hash=CryptoUtils.extrinsic_hash(extrinsic),
            block_hash=to_hex(CryptoUtils.blake2_256(str(self.ledger.block_number).encode())),
            block_number=self.ledger.block_number,
        )

    def close(self) -> None:
        self.ledger.closed += 1


class MockResponse:
    def __init__(self, status_code: int, json_data: Any):
        self.status_code = status_code
        self._json = json_data

    def json(self) -> Any:
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:  # noqa: PLR2004
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class TestClientSession:
    """requests-like session that forwards to a FastAPI TestClient."""

    __test__ = False

    def __init__(self, test_client: Any, base_url: str):
        self.test_client = test_client
        self.base_url = base_url

    def request(self, method: str, url: str, **kwargs: Any) -> MockResponse:
        kwargs.pop("timeout", None)
        response = self.test_client.request(
            method, url.replace(self.base_url, ""), **kwargs
        )
        return MockResponse(response.status_code, response.json())


@pytest.fixture
def ledger() -> FakeLedger:
    fake = FakeLedger()
    fake.add_document(Network.PEREGRINE, app_document())
    fake.add_document(Network.SPIRITNET, holder_document())
    return fake


@pytest.fixture
def keys_dir(tmp_path: Path) -> Path:
    keys = tmp_path / "keys"
    KeyGenerator(keys).generate_keys()
    return keys


@pytest.fixture
def config(tmp_path: Path, keys_dir: Path, monkeypatch: Any) -> Config:
    monkeypatch.setenv("DIDANCHOR_KEYS_DIR", str(keys_dir))
    monkeypatch.setenv("DIDANCHOR_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("DAPP_DID_URI", APP_DID)
    monkeypatch.setenv("DAPP_ACCOUNT_MNEMONIC", APP_MNEMONIC)
    monkeypatch.setenv("KILT_NETWORK", "peregrine")
    monkeypatch.setenv("PEREGRINE_SECRET_PAYER_MNEMONIC", PEREGRINE_PAYER)
    monkeypatch.setenv("SPIRITNET_SECRET_PAYER_MNEMONIC", SPIRITNET_PAYER)
    return Config()
