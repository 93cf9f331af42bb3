"""
Cache Adapters - On-disk mirror of tracker documents.
"""

from .index import CACHE_META_FILENAME, SCHEMA_VERSION, IndexStore, atomic_write_text
from .manager import CacheManager, content_digest

__all__ = [
    "CACHE_META_FILENAME",
    "SCHEMA_VERSION",
    "IndexStore",
    "atomic_write_text",
    "CacheManager",
    "content_digest",
]
