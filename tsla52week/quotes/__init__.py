"""
Quotes module: market data provider access.
"""

from .fetcher import quote_fetcher, QuoteFetcher, extract_prices

__all__ = ["quote_fetcher", "QuoteFetcher", "extract_prices"]
