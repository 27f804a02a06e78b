"""
Holder-side client: wallet handshake and HTTP access to the anchoring server.
"""

from .client import AnchorClient
from .wallet import Wallet

__all__ = ["AnchorClient", "Wallet"]
