"""KV and blob REST client tests."""

from __future__ import annotations

import json

import httpx
import pytest

from tsla52week.core.errors import StorageError
from tsla52week.storage.blobs import BlobStore
from tsla52week.storage.kv import KVStore

KV_URL = "https://kv.example.test"
BLOB_URL = "https://blob.example.test"


def kv_with(handler) -> KVStore:
    return KVStore(base_url=KV_URL, token="kv-token", transport=httpx.MockTransport(handler))


def blob_with(handler) -> BlobStore:
    return BlobStore(api_url=BLOB_URL, token="blob-token", transport=httpx.MockTransport(handler))


# ============================================================
# KV store
# ============================================================

@pytest.mark.asyncio
async def test_get_json_decodes_stored_string():
    commands: list[list[str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        commands.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer kv-token"
        return httpx.Response(200, json={"result": '{"high":358.64,"low":138.8,"lastUpdated":1}'})

    value = await kv_with(handler).get_json("priceData")

    assert value == {"high": 358.64, "low": 138.8, "lastUpdated": 1}
    assert commands == [["GET", "priceData"]]


@pytest.mark.asyncio
async def test_get_json_returns_none_for_missing_key():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": None})

    assert await kv_with(handler).get_json("priceData") is None


@pytest.mark.asyncio
async def test_get_json_rejects_corrupt_value():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "{not json"})

    with pytest.raises(StorageError):
        await kv_with(handler).get_json("priceData")


@pytest.mark.asyncio
async def test_set_json_sends_compact_json_with_expiry():
    commands: list[list[str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        commands.append(json.loads(request.content))
        return httpx.Response(200, json={"result": "OK"})

    await kv_with(handler).set_json("priceData", {"high": 1.5, "low": 1.0}, ttl=60)

    assert commands == [["SET", "priceData", '{"high":1.5,"low":1.0}', "EX", "60"]]


@pytest.mark.asyncio
async def test_command_error_body_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "WRONGPASS invalid token"})

    with pytest.raises(StorageError, match="400"):
        await kv_with(handler).set_json("priceData", {})


@pytest.mark.asyncio
async def test_non_json_kv_body_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy error</html>")

    with pytest.raises(StorageError, match="non-JSON"):
        await kv_with(handler).get_json("priceData")


@pytest.mark.asyncio
async def test_unconfigured_store_raises_without_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    store = KVStore(base_url="", token="", transport=httpx.MockTransport(handler))
    with pytest.raises(StorageError, match="not configured"):
        await store.get_json("priceData")


@pytest.mark.asyncio
async def test_health_check_reports_ping_result():
    def pong(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "PONG"})

    def down(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    assert await kv_with(pong).health_check() is True
    assert await kv_with(down).health_check() is False


# ============================================================
# Blob store
# ============================================================

@pytest.mark.asyncio
async def test_list_all_follows_cursor():
    pages = {
        None: {
            "blobs": [{"url": "https://b/1.png", "pathname": "tesla-1.png", "uploadedAt": "2025-01-01T00:00:00.000Z"}],
            "cursor": "page-2",
            "hasMore": True,
        },
        "page-2": {
            "blobs": [{"url": "https://b/2.png", "pathname": "tesla-2.png", "uploadedAt": "2025-02-01T00:00:00.000Z"}],
            "cursor": None,
            "hasMore": False,
        },
    }
    prefixes: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        prefixes.append(request.url.params["prefix"])
        return httpx.Response(200, json=pages[request.url.params.get("cursor")])

    blobs = await blob_with(handler).list_all(prefix="tesla-")

    assert [blob.pathname for blob in blobs] == ["tesla-1.png", "tesla-2.png"]
    assert blobs[1].uploaded_at.month == 2
    assert prefixes == ["tesla-", "tesla-"]


@pytest.mark.asyncio
async def test_put_uploads_without_random_suffix():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "url": "https://b/tesla-prices-abc.png",
            "pathname": "tesla-prices-abc.png",
        })

    blob = await blob_with(handler).put("tesla-prices-abc.png", b"png-bytes")

    request = seen[0]
    assert request.method == "PUT"
    assert request.url.path == "/tesla-prices-abc.png"
    assert request.headers["x-add-random-suffix"] == "0"
    assert request.headers["x-content-type"] == "image/png"
    assert request.headers["Authorization"] == "Bearer blob-token"
    assert request.content == b"png-bytes"
    assert blob.url == "https://b/tesla-prices-abc.png"


@pytest.mark.asyncio
async def test_blob_errors_raise_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": "forbidden"}})

    with pytest.raises(StorageError, match="403"):
        await blob_with(handler).list_blobs(prefix="tesla-")


@pytest.mark.asyncio
async def test_unparseable_upload_time_is_ignored():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "blobs": [
                {"url": "https://b/1.png", "pathname": "tesla-1.png", "uploadedAt": "yesterday"},
                {"url": "https://b/2.png", "pathname": "tesla-2.png", "uploadedAt": "2025-02-01T00:00:00.000Z"},
            ],
            "hasMore": False,
        })

    page = await blob_with(handler).list_blobs(prefix="tesla-")

    assert page.blobs[0].uploaded_at is None
    assert page.blobs[1].uploaded_at.month == 2
