"""
Price Service - freshness cache in front of the quote provider.

Decision logic for every price request:

1. Debug mode serves fixed prices without any I/O.
2. A cached record younger than the staleness window is served as is.
3. Otherwise the quote provider is asked (one retry), the result is
   written back to the KV store and served.
4. If both attempts fail, the stale record is served when there is
   one, else the hard-coded default prices.

KV failures never fail a request: an unreadable cache is a miss and
an unwritable cache only costs a refetch on the next request.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError

from ..core.config import settings
from ..core.errors import QuoteFetchError, StorageError
from ..core.utils import format_duration, now_ms
from ..models.schemas import PriceData, PriceSource
from ..quotes.fetcher import QuoteFetcher, quote_fetcher
from ..storage.kv import KVStore, kv_store

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_HIGH = 358.64
DEFAULT_LOW = 138.8

DEBUG_HIGH = 389.49
DEBUG_LOW = 138.8
DEBUG_AGE_MS = 8 * 60 * 60 * 1000


@dataclass(frozen=True)
class PriceResult:
    """Price data together with where it came from."""
    data: PriceData
    source: PriceSource


def is_stale(price_data: PriceData, now: int, window_ms: int) -> bool:
    """
    Check whether a cached record is past the staleness window.

    A record exactly `window_ms` old is still fresh.
    """
    return now - price_data.last_updated > window_ms


class PriceService:
    """
    Serves the 52-week prices from the KV cache, refreshing when stale.

    Concurrent requests that find the cache stale share a single
    refresh: the first one fetches, the others wait on the lock and
    then find the fresh record in the store. When the refresh could
    not update the store (provider down, KV write failed) the waiters
    are handed the outcome of that refresh instead of fetching again.
    """

    def __init__(
        self,
        store: Optional[KVStore] = None,
        fetcher: Optional[QuoteFetcher] = None,
        staleness_ms: Optional[int] = None,
        fetch_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        debug: Optional[bool] = None,
        clock: Callable[[], int] = now_ms
    ):
        self.store = store or kv_store
        self.fetcher = fetcher or quote_fetcher
        self.price_key = settings.kv.price_key
        self.staleness_ms = staleness_ms if staleness_ms is not None else settings.cache.staleness_ms
        self.fetch_attempts = max(
            1, fetch_attempts if fetch_attempts is not None else settings.cache.fetch_attempts
        )
        self.retry_delay = retry_delay if retry_delay is not None else settings.cache.retry_delay
        self.debug = settings.debug if debug is None else debug
        self.clock = clock
        self._lock = asyncio.Lock()
        # Bumped after every refresh; waiters compare it to skip refetching
        self._generation = 0
        self._last_refresh: Optional[PriceResult] = None

    def default_prices(self) -> PriceData:
        return PriceData(high=DEFAULT_HIGH, low=DEFAULT_LOW, last_updated=self.clock())

    def debug_prices(self) -> PriceData:
        return PriceData(high=DEBUG_HIGH, low=DEBUG_LOW, last_updated=self.clock() - DEBUG_AGE_MS)

    async def peek(self) -> Optional[PriceData]:
        """
        Read the cached record without triggering a fetch.

        Returns:
            The cached PriceData, or None if absent or malformed

        Raises:
            StorageError: if the KV store cannot be reached
        """
        raw = await self.store.get_json(self.price_key)
        if raw is None:
            return None
        try:
            return PriceData.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed '{self.price_key}' record: {e.error_count()} errors")
            return None

    async def _read_cached(self) -> Optional[PriceData]:
        try:
            return await self.peek()
        except StorageError as e:
            logger.warning(f"KV read failed, treating as cache miss: {str(e)}")
            return None

    async def _write_cached(self, price_data: PriceData) -> None:
        try:
            await self.store.set_json(self.price_key, price_data.to_wire())
        except StorageError as e:
            logger.error(f"KV write failed, serving uncached prices: {str(e)}")

    async def _fetch_with_retry(self) -> PriceData:
        last_error: Optional[QuoteFetchError] = None
        for attempt in range(1, self.fetch_attempts + 1):
            try:
                return await self.fetcher.fetch_price_data()
            except QuoteFetchError as e:
                last_error = e
                logger.warning(f"Quote fetch attempt {attempt}/{self.fetch_attempts} failed: {str(e)}")
                if attempt < self.fetch_attempts:
                    await asyncio.sleep(self.retry_delay)
        raise last_error

    async def _refresh_locked(self, cached: Optional[PriceData]) -> PriceResult:
        result = await self._refresh_outcome(cached)
        self._last_refresh = result
        self._generation += 1
        return result

    async def _refresh_outcome(self, cached: Optional[PriceData]) -> PriceResult:
        try:
            fresh = await self._fetch_with_retry()
        except QuoteFetchError as e:
            if cached is not None:
                age = (self.clock() - cached.last_updated) / 1000
                logger.error(f"Refresh failed, serving prices {format_duration(age)} old: {str(e)}")
                return PriceResult(cached, PriceSource.STALE)
            logger.error(f"Refresh failed and nothing is cached, serving defaults: {str(e)}")
            return PriceResult(self.default_prices(), PriceSource.DEFAULT)

        await self._write_cached(fresh)
        return PriceResult(fresh, PriceSource.LIVE)

    async def get_prices(self) -> PriceResult:
        """
        Return current prices, refetching only when the cache is stale.

        Never raises for KV or quote provider failures.
        """
        if self.debug:
            return PriceResult(self.debug_prices(), PriceSource.DEBUG)

        cached = await self._read_cached()
        if cached is not None and not is_stale(cached, self.clock(), self.staleness_ms):
            return PriceResult(cached, PriceSource.CACHE)

        generation = self._generation
        async with self._lock:
            # Another request may have refreshed while this one waited
            cached = await self._read_cached()
            if cached is not None and not is_stale(cached, self.clock(), self.staleness_ms):
                return PriceResult(cached, PriceSource.CACHE)
            if self._generation != generation and self._last_refresh is not None:
                logger.debug("Sharing the outcome of the refresh that ran while waiting")
                return self._last_refresh

            logger.info("Cached prices missing or stale, refreshing")
            return await self._refresh_locked(cached)

    async def refresh(self, force: bool = True) -> PriceResult:
        """
        Refetch prices.

        Args:
            force: refetch even if the cached record is still fresh;
                with force=False this is the same as get_prices()
        """
        if not force:
            return await self.get_prices()
        if self.debug:
            return PriceResult(self.debug_prices(), PriceSource.DEBUG)

        async with self._lock:
            cached = await self._read_cached()
            logger.info("Forced price refresh requested")
            return await self._refresh_locked(cached)


# Global service instance for the application
price_service = PriceService()
