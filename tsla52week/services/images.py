"""
Image Memoizer - stores the rendered meme once per distinct price pair.

The prices an image shows are encoded into its blob pathname
(`tesla-prices-<base64 JSON>.png`). Before uploading, the newest
stored image is decoded; if it already shows the submitted prices
its URL is returned and nothing is uploaded.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..core.config import settings
from ..core.errors import InvalidImageError
from ..core.utils import safe_json_dumps, safe_json_loads
from ..models.schemas import PricePoint
from ..storage.blobs import BlobInfo, BlobStore, blob_store

# Configure logging
logger = logging.getLogger(__name__)

PRICES_MARKER = "-prices-"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a memoized upload."""
    url: str
    is_new_upload: bool


def _b64decode_any(token: str) -> bytes:
    """Decode base64 in either the URL-safe or standard alphabet, padded or not."""
    normalized = token.replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


def encode_price_pathname(high: float, low: float, prefix: str = "tesla-") -> str:
    """
    Build the blob pathname carrying a price pair.

    URL-safe base64 without padding keeps the pathname free of '/'
    and '=' characters.
    """
    payload = safe_json_dumps({"high": high, "low": low}).encode("utf-8")
    token = base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")
    return f"{prefix}prices-{token}.png"


def decode_price_pathname(pathname: str) -> Optional[tuple[float, float]]:
    """
    Recover the (high, low) pair encoded in a blob pathname.

    Tolerates a trailing `-<suffix>` appended by the blob store.

    Returns:
        (high, low), or None if the pathname does not carry valid prices
    """
    parts = pathname.split(PRICES_MARKER)
    if len(parts) != 2:
        return None

    token = parts[1].split(".")[0]
    if not token:
        return None

    candidates = [token]
    if "-" in token:
        candidates.append(token.rsplit("-", 1)[0])

    for candidate in candidates:
        try:
            raw = _b64decode_any(candidate)
        except (binascii.Error, ValueError):
            continue
        data = safe_json_loads(raw)
        if not isinstance(data, dict):
            continue
        high, low = data.get("high"), data.get("low")
        if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (high, low)):
            return float(high), float(low)

    logger.debug(f"No price data encoded in pathname {pathname}")
    return None


def decode_data_url(data_url: str, max_bytes: int) -> bytes:
    """
    Decode a `data:image/png;base64,...` URL into PNG bytes.

    Raises:
        InvalidImageError: wrong scheme or media type, bad base64,
            payload over `max_bytes`, or not a PNG
    """
    if not data_url.startswith("data:"):
        raise InvalidImageError("Image must be a data URL")

    header, sep, payload = data_url[len("data:"):].partition(",")
    if not sep:
        raise InvalidImageError("Malformed data URL")

    media = header.split(";")
    if media[0].lower() != "image/png" or "base64" not in media[1:]:
        raise InvalidImageError("Image must be base64-encoded image/png")

    if len(payload) * 3 // 4 > max_bytes:
        raise InvalidImageError(f"Image exceeds {max_bytes} bytes")

    try:
        body = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image data is not valid base64") from e

    if len(body) > max_bytes:
        raise InvalidImageError(f"Image exceeds {max_bytes} bytes")
    if not body.startswith(PNG_SIGNATURE):
        raise InvalidImageError("Image data is not a PNG")
    return body


class ImageMemoizer:
    """Finds the latest rendered image and uploads new ones only when prices change."""

    def __init__(
        self,
        store: Optional[BlobStore] = None,
        prefix: Optional[str] = None,
        max_upload_bytes: Optional[int] = None
    ):
        self.store = store or blob_store
        self.prefix = prefix or settings.blob.image_prefix
        self.max_upload_bytes = max_upload_bytes or settings.blob.max_upload_bytes

    async def latest_image(self) -> Optional[BlobInfo]:
        """
        Return the most recently uploaded image, or None if there is none.

        Raises:
            StorageError: if the blob store cannot be listed
        """
        blobs = await self.store.list_all(prefix=self.prefix)
        if not blobs:
            return None
        return max(blobs, key=lambda blob: blob.uploaded_at or _EPOCH)

    async def memoize(self, data_url: str, prices: PricePoint) -> UploadResult:
        """
        Store the rendered image unless the latest one shows the same prices.

        Raises:
            InvalidImageError: if an upload is needed and the data URL is unusable
            StorageError: if the blob store fails
        """
        latest = await self.latest_image()
        last_prices = decode_price_pathname(latest.pathname) if latest else None

        if latest and latest.url and last_prices == (prices.high, prices.low):
            logger.info(f"Prices unchanged, reusing {latest.pathname}")
            return UploadResult(url=latest.url, is_new_upload=False)

        body = decode_data_url(data_url, self.max_upload_bytes)
        pathname = encode_price_pathname(prices.high, prices.low, self.prefix)
        blob = await self.store.put(pathname, body, content_type="image/png")

        logger.info(f"Stored new image for high={prices.high}, low={prices.low}")
        return UploadResult(url=blob.url, is_new_upload=True)


# Global memoizer instance for the application
image_memoizer = ImageMemoizer()
