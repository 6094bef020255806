"""
Storage module: KV store for price data, blob store for rendered images.
"""

from .kv import kv_store, KVStore
from .blobs import blob_store, BlobStore, BlobInfo, BlobListPage

__all__ = ["kv_store", "KVStore", "blob_store", "BlobStore", "BlobInfo", "BlobListPage"]
