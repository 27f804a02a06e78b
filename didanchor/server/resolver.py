"""
DID resolution across the configured ledger networks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from didanchor.common.exceptions import IdentifierUnresolvable, ServiceError
from didanchor.common.identifiers import parse_did
from didanchor.common.models import DidDocument, Network, ResolvedDid
from didanchor.ledger import open_connection

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from didanchor.common.identifiers import Did
    from didanchor.common.interfaces import ILedgerConnector


@dataclass(frozen=True)
class ResolutionAttempt:
    """Outcome of probing one network."""

    network: Network
    document: DidDocument | None = None
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.document is not None


class NetworkResolver:
    """Queries networks in a fixed order; the first one holding the DID wins."""

    def __init__(self, connector: ILedgerConnector, order: Sequence[Network]):
        self.connector = connector
        self.order = tuple(Network(n) for n in order)
        self.logger = logging.getLogger(__name__)

    def iter_attempts(self, did: str) -> Iterator[ResolutionAttempt]:
        """Lazily query each network in order, one attempt per network."""
        parsed = self._parse_full(did)
        for network in self.order:
            yield self._attempt(parsed, network)

    def resolve(self, did: str) -> ResolvedDid:
        """Resolve on the first network that holds the DID document."""
        tried: list[str] = []
        for attempt in self.iter_attempts(did):
            tried.append(attempt.network.value)
            if attempt.found:
                assert attempt.document is not None
                self.logger.info("Resolved %s on %s", did, attempt.network.value)
                return ResolvedDid(document=attempt.document, network=attempt.network)
        raise IdentifierUnresolvable(did, tried)

    def resolve_on(self, did: str, network: Network) -> ResolvedDid:
        """Resolve against a single network."""
        network = Network(network)
        attempt = self._attempt(self._parse_full(did), network)
        if not attempt.found:
            raise IdentifierUnresolvable(did, [network.value]) from attempt.error
        assert attempt.document is not None
        return ResolvedDid(document=attempt.document, network=network)

    def _parse_full(self, did: str) -> Did:
        parsed = parse_did(did)
        if parsed.light:
            # Light DIDs are not stored on any ledger
            raise IdentifierUnresolvable(did)
        return parsed

    def _attempt(self, did: Did, network: Network) -> ResolutionAttempt:
        try:
            with open_connection(self.connector, network) as connection:
                document = connection.query_did(did)
        except (ServiceError, ValueError, KeyError) as err:
            self.logger.info(
                "Resolution of %s on %s failed: %s", did.uri, network.value, err
            )
            return ResolutionAttempt(network=network, error=err)
        if document is None:
            self.logger.debug("%s not found on %s", did.uri, network.value)
        return ResolutionAttempt(network=network, document=document)
