"""
Fill processing: pricing, binary market grouping and summary statistics.
"""

from .price_engine import (
    derive_price,
    derive_amount,
    derive_side,
    process_fills,
    process_market_fills,
)
from .pair_matcher import BinaryPairMatcher, PairingPolicy, bucket_by_token
from .aggregator import summarize, outcome_statistics, log_statistics

__all__ = [
    "derive_price",
    "derive_amount",
    "derive_side",
    "process_fills",
    "process_market_fills",
    "BinaryPairMatcher",
    "PairingPolicy",
    "bucket_by_token",
    "summarize",
    "outcome_statistics",
    "log_statistics",
]
