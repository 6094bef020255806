"""
Quote Fetcher - 52-week high/low from Alpha Vantage monthly bars.

The 52-week range is approximated from the twelve most recent
monthly adjusted bars: the maximum of their highs and the minimum
of their lows.
"""

import httpx
import logging
import math
from typing import Any, Optional

from ..core.config import settings
from ..core.errors import QuoteFetchError
from ..core.utils import now_ms
from ..models.schemas import PriceData

# Configure logging
logger = logging.getLogger(__name__)

SERIES_KEY = "Monthly Adjusted Time Series"
HIGH_FIELD = "2. high"
LOW_FIELD = "3. low"

# Keys Alpha Vantage uses to report rate limits and bad requests with a 200 status
NOTICE_KEYS = ("Error Message", "Note", "Information")


def _parse_price(value: Any) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def extract_prices(
    series: dict[str, dict[str, Any]],
    months: int = 12
) -> tuple[list[float], list[float]]:
    """
    Pull monthly highs and lows out of an Alpha Vantage time series.

    Only the first `months` entries are considered, in the order the
    API returned them (most recent first). A month is kept only if
    both values parse, are positive and high >= low.

    Returns:
        (highs, lows) of equal length

    Raises:
        QuoteFetchError: if no month survives validation
    """
    highs: list[float] = []
    lows: list[float] = []

    for date in list(series)[:months]:
        bar = series[date]
        if not isinstance(bar, dict):
            continue
        high = _parse_price(bar.get(HIGH_FIELD))
        low = _parse_price(bar.get(LOW_FIELD))
        if high is None or low is None:
            continue
        if high > 0 and low > 0 and high >= low:
            highs.append(high)
            lows.append(low)
        else:
            logger.debug(f"Skipping inconsistent bar for {date}: high={high}, low={low}")

    if not highs:
        raise QuoteFetchError("Failed to parse high/low prices from API response")

    return highs, lows


class QuoteFetcher:
    """
    Fetches the monthly adjusted series and reduces it to a PriceData.

    Every failure is raised as QuoteFetchError; retrying and falling
    back are left to the price service.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        symbol: Optional[str] = None,
        months: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.quote.api_key
        self.symbol = symbol or settings.quote.symbol
        self.months = months or settings.quote.months
        self.base_url = settings.quote.base_url
        self.timeout = settings.quote.timeout
        self.transport = transport

    async def fetch_price_data(self) -> PriceData:
        """
        Fetch the 52-week high/low for the configured symbol.

        Returns:
            PriceData stamped with the current time

        Raises:
            QuoteFetchError: on missing API key, HTTP error, error payload
                or unparseable data
        """
        if not self.api_key:
            raise QuoteFetchError("ALPHA_VANTAGE_API_KEY is not configured")

        params = {
            "function": "TIME_SERIES_MONTHLY_ADJUSTED",
            "symbol": self.symbol,
            "apikey": self.api_key,
        }

        logger.info(f"Requesting monthly series for {self.symbol} from Alpha Vantage")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    self.base_url,
                    params=params,
                    headers={"Accept": "application/json"}
                )
        except httpx.TimeoutException as e:
            raise QuoteFetchError("Timeout while contacting Alpha Vantage") from e
        except httpx.HTTPError as e:
            raise QuoteFetchError(f"Alpha Vantage request failed: {str(e)}") from e

        if response.status_code != 200:
            raise QuoteFetchError(
                f"Alpha Vantage API error! status: {response.status_code}, {response.text}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise QuoteFetchError("Alpha Vantage returned a non-JSON body") from e

        series = payload.get(SERIES_KEY) if isinstance(payload, dict) else None
        if not isinstance(series, dict) or not series:
            notice = next(
                (payload[key] for key in NOTICE_KEYS if isinstance(payload, dict) and key in payload),
                None
            )
            message = f"Invalid API response: Missing {SERIES_KEY}"
            if notice:
                message += f" ({notice})"
            raise QuoteFetchError(message)

        highs, lows = extract_prices(series, self.months)
        price_data = PriceData(high=max(highs), low=min(lows), last_updated=now_ms())

        logger.info(
            f"Fetched {self.symbol} 52-week range from {len(highs)} months: "
            f"high={price_data.high}, low={price_data.low}"
        )
        return price_data


# Global fetcher instance for the application
quote_fetcher = QuoteFetcher()
