"""
Command-line interface for didanchor.
"""

from __future__ import annotations

import json
import os

import click

from didanchor.common.config import Config
from didanchor.common.exceptions import ServiceError
from didanchor.common.identifiers import require_full_did
from didanchor.common.models import Network, Role
from didanchor.ledger.substrate import SubstrateConnector
from didanchor.server import start_server
from didanchor.server.custody import Custodian
from didanchor.server.keygen import KeyGenerator
from didanchor.server.resolver import NetworkResolver
from didanchor.server.user_store import JsonUserStore

NETWORK_CHOICE = click.Choice([n.value for n in Network])
ROLE_CHOICE = click.Choice([r.value for r in Role], case_sensitive=False)


@click.group()
def cli() -> None:
    """DID session and credential anchoring CLI"""


@cli.command()
@click.option(
    "--keys-dir",
    default=None,
    help="Directory to save keys (default: ./didanchor/server)",
)
def keygen(keys_dir: str | None) -> None:
    """Generate token signing Ed25519 keys"""
    if keys_dir:
        os.environ["DIDANCHOR_KEYS_DIR"] = keys_dir

    KeyGenerator(Config().KEYS_DIR).generate_keys()
    click.echo("Keys generated and saved")


@cli.command()
@click.option(
    "--keys-dir",
    default=None,
    help="Directory to load keys from (default: ./didanchor/server)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind server to (default: from SERVER_HOST env or 127.0.0.1)",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Port to bind server to (default: from SERVER_PORT env or 4000)",
)
def serve(keys_dir: str | None, host: str | None, port: int | None) -> None:
    """Start the anchoring server"""
    if keys_dir:
        os.environ["DIDANCHOR_KEYS_DIR"] = keys_dir
    if host:
        os.environ["SERVER_HOST"] = host
    if port:
        os.environ["SERVER_PORT"] = str(port)

    config = Config()
    try:
        config.get_token_keys()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    start_server(config)


@cli.command("payer-address")
@click.argument("network", type=NETWORK_CHOICE)
def payer_address(network: str) -> None:
    """Print the custodial submitter address of a network"""
    try:
        click.echo(Custodian(Config()).payer_address(Network(network)))
    except ServiceError as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("did")
@click.option(
    "--network",
    type=NETWORK_CHOICE,
    default=None,
    help="Resolve on this network only (default: try all networks in order)",
)
def resolve(did: str, network: str | None) -> None:
    """Resolve a DID and print its network and document"""
    config = Config()
    resolver = NetworkResolver(SubstrateConnector(config), config.RESOLUTION_ORDER)
    try:
        if network:
            resolved = resolver.resolve_on(did, Network(network))
        else:
            resolved = resolver.resolve(did)
    except ServiceError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"network: {resolved.network.value}")
    click.echo(json.dumps(resolved.document.model_dump(by_alias=True), indent=2))


@cli.command("add-roles")
@click.argument("did")
@click.argument("roles", nargs=-1, required=True, type=ROLE_CHOICE)
def add_roles(did: str, roles: tuple[str, ...]) -> None:
    """Grant roles to a user, registering the user if needed"""
    try:
        uri = require_full_did(did).uri
    except ServiceError as e:
        raise click.ClickException(str(e)) from e

    store = JsonUserStore(Config().USERS_FILE_PATH)
    user = store.add_roles(uri, [Role(r.upper()) for r in roles])
    click.echo(f"{user.did}: {', '.join(r.value for r in user.roles)}")


if __name__ == "__main__":
    cli()
