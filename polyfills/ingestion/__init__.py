"""
Fill ingestion: paginated, rate-limit aware fetching per outcome token.
"""

from .fill_fetcher import FillFetcher, RetryPolicy

__all__ = [
    "FillFetcher",
    "RetryPolicy",
]
