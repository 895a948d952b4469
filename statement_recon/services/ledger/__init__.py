"""
Ledger gateway package.

Provides the abstract gateway and its HTTP implementation.
"""

from statement_recon.services.ledger.client import HttpLedgerGateway
from statement_recon.services.ledger.interface import (
    LedgerError,
    LedgerGateway,
    LedgerHTTPError,
    LedgerTransportError,
)

__all__ = [
    # Interface
    "LedgerGateway",
    # Implementation
    "HttpLedgerGateway",
    # Exceptions
    "LedgerError",
    "LedgerHTTPError",
    "LedgerTransportError",
]
