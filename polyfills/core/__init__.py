"""
Data model and API clients (orderbook subgraph, Gamma metadata).
"""

from .models import (
    TradeSide,
    TokenOutcomes,
    RawFillEvent,
    ProcessedFill,
    MarketGroup,
    SummaryRow,
    OutcomeStats,
)
from .subgraph_client import SubgraphClient
from .gamma_client import GammaClient, extract_token_outcomes

__all__ = [
    "TradeSide",
    "TokenOutcomes",
    "RawFillEvent",
    "ProcessedFill",
    "MarketGroup",
    "SummaryRow",
    "OutcomeStats",
    "SubgraphClient",
    "GammaClient",
    "extract_token_outcomes",
]
