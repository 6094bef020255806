"""Background refresher tests."""

from __future__ import annotations

import asyncio

import pytest

from tsla52week.core.errors import QuoteFetchError
from tsla52week.models.schemas import PriceData, PriceSource
from tsla52week.services.prices import PriceService
from tsla52week.workers.refresher import PriceRefresher

from .fakes import HOUR_MS, NOW_MS, FakeFetcher, FakeKV, price_record


def refresher_for(store: FakeKV, fetcher: FakeFetcher, poll_interval: float = 0.01) -> PriceRefresher:
    service = PriceService(store=store, fetcher=fetcher, retry_delay=0, debug=False, clock=lambda: NOW_MS)
    return PriceRefresher(service=service, poll_interval=poll_interval)


@pytest.mark.asyncio
async def test_tick_refreshes_stale_cache():
    store = FakeKV({"priceData": price_record(400.0, 150.0, NOW_MS - 5 * HOUR_MS)})
    refresher = refresher_for(store, FakeFetcher(PriceData(high=488.54, low=138.8, last_updated=NOW_MS)))

    assert await refresher.tick() == PriceSource.LIVE
    assert refresher.refreshes == 1
    assert store.data["priceData"]["lastUpdated"] == NOW_MS


@pytest.mark.asyncio
async def test_tick_leaves_fresh_cache_alone():
    store = FakeKV({"priceData": price_record(400.0, 150.0, NOW_MS)})
    fetcher = FakeFetcher(QuoteFetchError("must not be called"))
    refresher = refresher_for(store, fetcher)

    assert await refresher.tick() == PriceSource.CACHE
    assert fetcher.calls == 0
    assert refresher.refreshes == 0


@pytest.mark.asyncio
async def test_tick_counts_failed_refreshes():
    refresher = refresher_for(FakeKV(), FakeFetcher(QuoteFetchError("down")))

    assert await refresher.tick() == PriceSource.DEFAULT
    assert refresher.failures == 1


@pytest.mark.asyncio
async def test_loop_runs_until_stopped():
    store = FakeKV({"priceData": price_record(400.0, 150.0, NOW_MS)})
    refresher = refresher_for(store, FakeFetcher(QuoteFetchError("unused")))

    task = asyncio.create_task(refresher.start())
    await asyncio.sleep(0.05)
    await refresher.stop()
    await asyncio.wait_for(task, timeout=1)

    assert store.reads >= 2
    assert refresher.running is False
