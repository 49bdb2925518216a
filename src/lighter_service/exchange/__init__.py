"""Exchange and market data clients."""

from lighter_service.exchange.base import MarketDataFeed, OrderGateway
from lighter_service.exchange.lighter import LighterClient
from lighter_service.exchange.public import PublicMarketClient
from lighter_service.exchange.signer import LighterSigner

__all__ = [
    "LighterClient",
    "LighterSigner",
    "MarketDataFeed",
    "OrderGateway",
    "PublicMarketClient",
]
