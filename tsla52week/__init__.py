"""
TSLA 52-Week Meme Service

Serves Tesla's 52-week high/low prices from a KV-backed freshness
cache and memoizes the rendered meme image in blob storage.
"""

__version__ = "1.0.0"
