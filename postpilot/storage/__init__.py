"""
Storage for postpilot: result cache, rate limiting and saved per-resource
values over a transient store.
"""

from .base import Counter, KVCache, MemoryStore, TransientStore
from .cache import CacheLayer
from .meta import ResourceMetaStore
from .rate_limiter import RateLimiter, RateLimitStatus
from .sql import SQLStore

__all__ = [
    'TransientStore',
    'MemoryStore',
    'SQLStore',
    'KVCache',
    'Counter',
    'CacheLayer',
    'ResourceMetaStore',
    'RateLimiter',
    'RateLimitStatus',
]
