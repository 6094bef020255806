"""
Blob Store - rendered image storage over the Vercel Blob REST API.

Only the two operations the image memoizer needs are implemented:
listing blobs under a prefix and uploading a new one.
"""

import httpx
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

from ..core.config import BlobConfig, settings
from ..core.errors import StorageError
from ..core.utils import parse_iso_timestamp

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobInfo:
    """
    Metadata of a stored blob.

    Attributes:
        url: Public URL of the blob
        pathname: Name the blob was stored under
        uploaded_at: Upload time, None if the store did not report it
        size: Size in bytes, None if unknown
    """
    url: str
    pathname: str
    uploaded_at: Optional[datetime] = None
    size: Optional[int] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BlobInfo":
        uploaded_at = None
        if data.get("uploadedAt"):
            try:
                uploaded_at = parse_iso_timestamp(str(data["uploadedAt"]))
            except ValueError:
                logger.warning(f"Ignoring unparseable uploadedAt {data['uploadedAt']!r} for {data.get('pathname')}")
        return cls(
            url=data.get("url") or "",
            pathname=data.get("pathname") or "",
            uploaded_at=uploaded_at,
            size=data.get("size")
        )


@dataclass(frozen=True)
class BlobListPage:
    """One page of a blob listing."""
    blobs: list[BlobInfo] = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False


class BlobStore:
    """
    Client for the Vercel Blob REST API.

    All failures raise StorageError; the memoizer and the API layer
    decide what to do about them.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0
    ):
        """Initialize the store with blob configuration."""
        config = BlobConfig(
            api_url=(api_url if api_url is not None else settings.blob.api_url).rstrip("/"),
            token=token if token is not None else settings.blob.token
        )
        self.api_url = config.api_url
        self.headers = config.headers
        self.transport = transport
        self.timeout = timeout

    async def _request(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise StorageError(f"Timeout on blob {method} {url}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Blob {method} failed: {str(e)}") from e

        if response.status_code != 200:
            raise StorageError(
                f"Blob {method} failed: Status {response.status_code}, Body: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise StorageError(f"Blob {method} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise StorageError(f"Blob {method} returned a malformed body")
        return data

    async def list_blobs(
        self,
        prefix: str = "",
        limit: int = 100,
        cursor: Optional[str] = None
    ) -> BlobListPage:
        """
        List one page of blobs whose pathname starts with `prefix`.

        Args:
            prefix: Pathname prefix filter
            limit: Maximum blobs per page
            cursor: Continuation cursor from a previous page

        Returns:
            BlobListPage with the blobs and pagination state
        """
        params: dict[str, Any] = {"limit": str(limit)}
        if prefix:
            params["prefix"] = prefix
        if cursor:
            params["cursor"] = cursor

        data = await self._request("GET", self.api_url, params=params)
        blobs = [BlobInfo.from_api(item) for item in data.get("blobs") or [] if isinstance(item, dict)]
        return BlobListPage(
            blobs=blobs,
            cursor=data.get("cursor"),
            has_more=bool(data.get("hasMore"))
        )

    async def list_all(self, prefix: str = "", page_size: int = 100, max_pages: int = 20) -> list[BlobInfo]:
        """
        Collect every blob under `prefix`, following the cursor.

        Stops after `max_pages` pages to bound the work per request.
        """
        blobs: list[BlobInfo] = []
        cursor = None
        for _ in range(max_pages):
            page = await self.list_blobs(prefix=prefix, limit=page_size, cursor=cursor)
            blobs.extend(page.blobs)
            if not page.has_more or not page.cursor:
                break
            cursor = page.cursor
        else:
            logger.warning(f"Blob listing for '{prefix}' truncated after {max_pages} pages")
        return blobs

    async def put(
        self,
        pathname: str,
        body: bytes,
        content_type: str = "image/png"
    ) -> BlobInfo:
        """
        Upload a public blob under an exact pathname.

        The store is told not to append a random suffix, so the
        pathname (and any data encoded in it) is preserved.

        Returns:
            BlobInfo of the stored blob
        """
        data = await self._request(
            "PUT",
            f"{self.api_url}/{quote(pathname)}",
            content=body,
            headers={
                "x-content-type": content_type,
                "x-add-random-suffix": "0",
                "x-allow-overwrite": "1",
            }
        )
        if not data.get("url"):
            raise StorageError(f"Blob PUT for '{pathname}' returned no URL")

        logger.info(f"Uploaded blob {pathname} ({len(body)} bytes)")
        return BlobInfo(
            url=data["url"],
            pathname=data.get("pathname") or pathname,
            size=len(body)
        )


# Global store instance for the application
blob_store = BlobStore()
