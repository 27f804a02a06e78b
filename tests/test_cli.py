from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from didanchor.cli import cli
from didanchor.common.config import Config
from didanchor.common.models import Role
from didanchor.server.user_store import JsonUserStore

from .conftest import (
    APP_DID,
    HOLDER_DID,
    LIGHT_DID,
    PEREGRINE_PAYER,
    FakeLedger,
    address_of,
)


def test_cli_help():
    """Test CLI help command."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage:" in result.output


def test_cli_keygen(tmp_path, monkeypatch):
    """Test keygen command."""
    keys_dir = tmp_path / "keys"
    monkeypatch.setenv("DIDANCHOR_KEYS_DIR", str(keys_dir))
    runner = CliRunner()

    result = runner.invoke(cli, ["keygen", "--keys-dir", str(keys_dir)])

    assert result.exit_code == 0
    assert "Keys generated and saved" in result.output
    assert (keys_dir / "token_private.key").exists()
    assert (keys_dir / "token_public.key").exists()


def test_cli_serve_help():
    """Test serve command help."""
    runner = CliRunner()
    result = runner.invoke(cli, ["serve", "--help"])
    assert result.exit_code == 0
    assert "Start the anchoring server" in result.output


def test_cli_serve_without_keys(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DIDANCHOR_KEYS_DIR", str(tmp_path / "missing"))
    with patch("didanchor.cli.start_server") as start:
        result = CliRunner().invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "didanchor keygen" in result.output
    start.assert_not_called()


def test_cli_serve(config: Config, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SERVER_PORT", "4000")
    with patch("didanchor.cli.start_server") as start:
        result = CliRunner().invoke(cli, ["serve", "--port", "4100"])
    assert result.exit_code == 0, result.output
    (passed,), _ = start.call_args
    assert passed.SERVER_PORT == 4100  # noqa: PLR2004


def test_cli_payer_address(config: Config):
    result = CliRunner().invoke(cli, ["payer-address", "peregrine"])
    assert result.exit_code == 0
    assert result.output.strip() == address_of(PEREGRINE_PAYER)


def test_cli_payer_address_unset(config: Config, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SPIRITNET_SECRET_PAYER_MNEMONIC")
    result = CliRunner().invoke(cli, ["payer-address", "spiritnet"])
    assert result.exit_code == 1
    assert "spiritnet" in result.output


def test_cli_payer_address_unknown_network(config: Config):
    result = CliRunner().invoke(cli, ["payer-address", "kusama"])
    assert result.exit_code == 2  # noqa: PLR2004


def test_cli_resolve(config: Config, ledger: FakeLedger):
    with patch("didanchor.cli.SubstrateConnector", return_value=ledger):
        result = CliRunner().invoke(cli, ["resolve", HOLDER_DID])
    assert result.exit_code == 0, result.output
    assert "network: spiritnet" in result.output
    assert HOLDER_DID in result.output


def test_cli_resolve_on_network(config: Config, ledger: FakeLedger):
    with patch("didanchor.cli.SubstrateConnector", return_value=ledger):
        result = CliRunner().invoke(
            cli, ["resolve", APP_DID, "--network", "spiritnet"]
        )
    assert result.exit_code == 1
    assert "could not resolve" in result.output


def test_cli_add_roles(config: Config):
    result = CliRunner().invoke(cli, ["add-roles", HOLDER_DID, "admin"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == f"{HOLDER_DID}: ADMIN"

    store = JsonUserStore(config.USERS_FILE_PATH)
    assert store.get(HOLDER_DID).roles == [Role.ADMIN]


def test_cli_add_roles_keeps_existing(config: Config):
    JsonUserStore(config.USERS_FILE_PATH).get_or_create(HOLDER_DID, Role.USER)

    result = CliRunner().invoke(cli, ["add-roles", HOLDER_DID, "ATTESTER", "USER"])

    assert result.exit_code == 0, result.output
    user = JsonUserStore(config.USERS_FILE_PATH).get(HOLDER_DID)
    assert user.roles == [Role.ATTESTER, Role.USER]
    assert user.primary_role is Role.ATTESTER


def test_cli_add_roles_rejects_light_did(config: Config):
    result = CliRunner().invoke(cli, ["add-roles", LIGHT_DID, "ADMIN"])
    assert result.exit_code == 1
    assert "full DID" in result.output
    assert not config.USERS_FILE_PATH.exists()


def test_cli_add_roles_unknown_role(config: Config):
    result = CliRunner().invoke(cli, ["add-roles", HOLDER_DID, "owner"])
    assert result.exit_code == 2  # noqa: PLR2004
