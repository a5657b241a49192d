"""
Exception types raised by the fill tracker.
"""

from typing import Optional


class PolyfillsError(Exception):
    """Base class for all fill tracker errors"""


class SubgraphError(PolyfillsError):
    """The order-fill subgraph returned an error or an unusable response"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimitError(SubgraphError):
    """The subgraph asked us to slow down. Safe to retry the same request."""


class MarketNotFoundError(PolyfillsError):
    """A market slug could not be resolved to any outcome tokens"""


class CacheMissError(PolyfillsError):
    """Cached data was required but none exists for the slug"""


class GammaError(PolyfillsError):
    """The Gamma metadata API failed or returned an unusable response"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
