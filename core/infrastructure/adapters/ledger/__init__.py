"""Ledger adapters."""
import logging

from core.domain.ledger import LedgerAdapter
from core.settings import LedgerSettings

from .http_ledger import HttpLedgerAdapter, LedgerGatewayError
from .in_memory_ledger import InMemoryLedgerAdapter


logger = logging.getLogger(__name__)


def create_ledger_adapter(settings: LedgerSettings) -> LedgerAdapter:
    """
    Create the ledger adapter for the configured environment.
    
    Args:
        settings: Ledger settings
    
    Returns:
        HttpLedgerAdapter when a gateway URL is configured,
        InMemoryLedgerAdapter otherwise
    """
    if settings.enabled:
        return HttpLedgerAdapter(settings)
    
    logger.warning("LEDGER_RPC_URL is not set, falling back to in-memory ledger")
    return InMemoryLedgerAdapter(default_reputation=settings.default_reputation)


__all__ = [
    "HttpLedgerAdapter",
    "InMemoryLedgerAdapter",
    "LedgerGatewayError",
    "create_ledger_adapter",
]
