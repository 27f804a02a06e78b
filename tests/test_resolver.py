import pytest

from didanchor.common.exceptions import IdentifierUnresolvable, InvalidIdentifier
from didanchor.common.models import Network
from didanchor.server.resolver import NetworkResolver

from .conftest import APP_DID, HOLDER_DID, LIGHT_DID, OTHER_DID, FakeLedger

ORDER = (Network.PEREGRINE, Network.SPIRITNET)


@pytest.fixture
def resolver(ledger: FakeLedger) -> NetworkResolver:
    return NetworkResolver(ledger, ORDER)


def test_resolve_first_network(resolver: NetworkResolver, ledger: FakeLedger) -> None:
    resolved = resolver.resolve(APP_DID)
    assert resolved.network is Network.PEREGRINE
    assert resolved.document.id == APP_DID
    assert ledger.opened == [Network.PEREGRINE]
    assert ledger.open_connections == 0


def test_resolve_falls_through_in_order(
    resolver: NetworkResolver, ledger: FakeLedger
) -> None:
    resolved = resolver.resolve(HOLDER_DID)
    assert resolved.network is Network.SPIRITNET
    assert ledger.opened == [Network.PEREGRINE, Network.SPIRITNET]
    assert ledger.open_connections == 0


def test_resolve_is_stable(resolver: NetworkResolver) -> None:
    networks = {resolver.resolve(HOLDER_DID).network for _ in range(3)}
    assert networks == {Network.SPIRITNET}


def test_resolve_strips_fragment(resolver: NetworkResolver) -> None:
    assert resolver.resolve(f"{APP_DID}#0x01").document.id == APP_DID


def test_unresolvable_after_all_networks(
    resolver: NetworkResolver, ledger: FakeLedger
) -> None:
    with pytest.raises(IdentifierUnresolvable) as exc_info:
        resolver.resolve(OTHER_DID)
    assert exc_info.value.networks == ["peregrine", "spiritnet"]
    assert exc_info.value.status_code == 404  # noqa: PLR2004
    assert ledger.open_connections == 0


def test_unreachable_network_is_skipped(
    resolver: NetworkResolver, ledger: FakeLedger
) -> None:
    ledger.unreachable.add(Network.PEREGRINE)
    attempts = list(resolver.iter_attempts(HOLDER_DID))
    assert [a.network for a in attempts] == list(ORDER)
    assert attempts[0].error is not None
    assert not attempts[0].found
    assert attempts[1].found
    assert resolver.resolve(HOLDER_DID).network is Network.SPIRITNET


def test_iter_attempts_is_lazy(resolver: NetworkResolver, ledger: FakeLedger) -> None:
    attempts = resolver.iter_attempts(APP_DID)
    assert ledger.opened == []
    first = next(attempts)
    assert first.found
    assert ledger.opened == [Network.PEREGRINE]


def test_resolve_on_single_network(
    resolver: NetworkResolver, ledger: FakeLedger
) -> None:
    assert resolver.resolve_on(HOLDER_DID, Network.SPIRITNET).network is Network.SPIRITNET
    with pytest.raises(IdentifierUnresolvable):
        resolver.resolve_on(HOLDER_DID, Network.PEREGRINE)
    assert ledger.open_connections == 0


def test_light_did_is_not_looked_up(resolver: NetworkResolver, ledger: FakeLedger) -> None:
    with pytest.raises(IdentifierUnresolvable):
        resolver.resolve(LIGHT_DID)
    assert ledger.opened == []


def test_malformed_did(resolver: NetworkResolver) -> None:
    with pytest.raises(InvalidIdentifier):
        resolver.resolve("did:kilt:nope")
