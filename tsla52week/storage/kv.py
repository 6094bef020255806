"""
KV Store - Upstash / Vercel KV access over the REST API.

Values are stored as JSON strings, the same encoding the Vercel KV
SDK uses, so a record written by either side can be read by the other.
"""

import httpx
import logging
from typing import Any, Optional

from ..core.config import KVConfig, settings
from ..core.errors import StorageError
from ..core.utils import safe_json_dumps, safe_json_loads

# Configure logging
logger = logging.getLogger(__name__)


class KVStore:
    """
    Minimal JSON key-value client for the Upstash REST API.

    Uses the REST API which is connectionless and serverless-friendly;
    every call opens a short-lived client with a tight timeout.

    Unlike the health check, reads and writes raise StorageError so
    the caller decides how to fall back.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 5.0
    ):
        """Initialize the store with KV configuration."""
        config = KVConfig(
            rest_url=base_url if base_url is not None else settings.kv.rest_url,
            rest_token=token if token is not None else settings.kv.rest_token
        )
        self.base_url = config.rest_url
        self.headers = config.headers
        self.transport = transport
        self.timeout = timeout

    async def _command(self, *args: str) -> Any:
        """
        Execute a single Redis command and return its `result`.

        Raises:
            StorageError: on transport failure, non-200 status or an
                `error` field in the response body
        """
        if not self.base_url:
            raise StorageError("KV store is not configured (KV_REST_API_URL is empty)")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}",
                    headers=self.headers,
                    json=list(args)
                )
        except httpx.TimeoutException as e:
            raise StorageError(f"Timeout running KV {args[0]}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"KV {args[0]} failed: {str(e)}") from e

        if response.status_code != 200:
            raise StorageError(
                f"KV {args[0]} failed: Status {response.status_code}, Body: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise StorageError(f"KV {args[0]} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise StorageError(f"KV {args[0]} returned a malformed body")
        if data.get("error"):
            raise StorageError(f"KV {args[0]} error: {data['error']}")
        return data.get("result")

    async def get_json(self, key: str) -> Any:
        """
        Read a JSON value.

        Returns:
            The decoded value, or None when the key does not exist

        Raises:
            StorageError: if the request fails or the stored value is not JSON
        """
        raw = await self._command("GET", key)
        if raw is None:
            return None
        if not isinstance(raw, str):
            return raw

        value = safe_json_loads(raw)
        if value is None:
            raise StorageError(f"Value under '{key}' is not valid JSON")
        return value

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Write a JSON value, optionally with an expiry in seconds.

        Raises:
            StorageError: if the store did not acknowledge the write
        """
        command = ["SET", key, safe_json_dumps(value)]
        if ttl:
            command += ["EX", str(ttl)]

        result = await self._command(*command)
        if result != "OK":
            raise StorageError(f"KV SET '{key}' was not acknowledged: {result!r}")
        logger.debug(f"Stored '{key}' in KV")

    async def health_check(self) -> bool:
        """
        Check if the KV connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            return await self._command("PING") == "PONG"
        except StorageError as e:
            logger.warning(f"KV health check failed: {str(e)}")
            return False


# Global store instance for the application
kv_store = KVStore()
