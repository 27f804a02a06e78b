"""
didanchor: DID session authentication and credential anchoring on KILT.
"""

__version__ = "0.1.0"
