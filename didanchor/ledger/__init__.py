"""
Ledger access.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from didanchor.common.interfaces import ILedgerConnection, ILedgerConnector
    from didanchor.common.models import Network


@contextmanager
def open_connection(
    connector: ILedgerConnector, network: Network
) -> Iterator[ILedgerConnection]:
    """Connection scoped to a with-block, closed on every exit path."""
    connection = connector.connect(network)
    try:
        yield connection
    finally:
        connection.close()
