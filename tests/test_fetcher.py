"""Alpha Vantage quote fetcher tests."""

from __future__ import annotations

import json

import httpx
import pytest

from tsla52week.core.errors import QuoteFetchError
from tsla52week.quotes.fetcher import QuoteFetcher, extract_prices


def monthly_series(bars: list[tuple[str, str]]) -> dict[str, dict[str, str]]:
    """Build a most-recent-first series from (high, low) strings."""
    series = {}
    for index, (high, low) in enumerate(bars):
        month = 12 - (index % 12)
        year = 2025 - index // 12
        series[f"{year}-{month:02d}-28"] = {
            "1. open": "200.0",
            "2. high": high,
            "3. low": low,
            "4. close": "210.0",
        }
    return series


def fetcher_for(handler) -> QuoteFetcher:
    return QuoteFetcher(api_key="test-key", symbol="TSLA", transport=httpx.MockTransport(handler))


def test_extract_prices_uses_only_the_most_recent_twelve_months():
    bars = [("300.0", "200.0")] * 12 + [("999.0", "1.0")]
    highs, lows = extract_prices(monthly_series(bars), months=12)

    assert len(highs) == 12
    assert max(highs) == 300.0
    assert min(lows) == 200.0


def test_extract_prices_skips_invalid_months():
    bars = [
        ("488.54", "214.25"),
        ("not-a-number", "150.0"),
        ("100.0", "120.0"),
        ("0", "0"),
        ("nan", "100.0"),
        ("358.64", "138.80"),
    ]
    highs, lows = extract_prices(monthly_series(bars))

    assert highs == [488.54, 358.64]
    assert lows == [214.25, 138.8]


def test_extract_prices_raises_when_nothing_parses():
    with pytest.raises(QuoteFetchError):
        extract_prices(monthly_series([("abc", "def"), ("-1", "-2")]))


@pytest.mark.asyncio
async def test_fetch_price_data_computes_range_and_sends_query():
    seen: list[httpx.Request] = []
    bars = [("410.0", "300.0"), ("488.54", "350.0"), ("400.0", "138.8")]

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Monthly Adjusted Time Series": monthly_series(bars)})

    data = await fetcher_for(handler).fetch_price_data()

    assert data.high == pytest.approx(488.54)
    assert data.low == pytest.approx(138.8)
    assert data.last_updated > 0

    params = seen[0].url.params
    assert params["function"] == "TIME_SERIES_MONTHLY_ADJUSTED"
    assert params["symbol"] == "TSLA"
    assert params["apikey"] == "test-key"


@pytest.mark.asyncio
async def test_fetch_price_data_reports_rate_limit_note():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Note": "API call frequency exceeded"})

    with pytest.raises(QuoteFetchError, match="frequency exceeded"):
        await fetcher_for(handler).fetch_price_data()


@pytest.mark.asyncio
async def test_fetch_price_data_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(QuoteFetchError, match="503"):
        await fetcher_for(handler).fetch_price_data()


@pytest.mark.asyncio
async def test_fetch_price_data_raises_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(QuoteFetchError):
        await fetcher_for(handler).fetch_price_data()


@pytest.mark.asyncio
async def test_fetch_price_data_rejects_non_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    with pytest.raises(QuoteFetchError, match="non-JSON"):
        await fetcher_for(handler).fetch_price_data()


@pytest.mark.asyncio
async def test_fetch_price_data_requires_api_key():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    fetcher = QuoteFetcher(api_key="", transport=httpx.MockTransport(handler))
    with pytest.raises(QuoteFetchError, match="ALPHA_VANTAGE_API_KEY"):
        await fetcher.fetch_price_data()


def test_series_order_is_preserved_from_json_payload():
    raw = json.dumps({
        "Monthly Adjusted Time Series": monthly_series([("1.0", "0.5")] * 11 + [("2.0", "1.5"), ("50.0", "0.1")])
    })
    series = json.loads(raw)["Monthly Adjusted Time Series"]
    highs, lows = extract_prices(series)

    assert max(highs) == 2.0
    assert min(lows) == 0.5
