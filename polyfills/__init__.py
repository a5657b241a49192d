"""
Polyfills - Polymarket fill history reconstruction and market aggregation.
"""

__version__ = "0.1.0"
