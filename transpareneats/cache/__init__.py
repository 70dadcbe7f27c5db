from .backends import (
    ICacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    CacheBackendError,
    create_cache_backend,
)
from .layered import LayeredCache, CacheKeys, CacheTTL

__all__ = [
    "ICacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "CacheBackendError",
    "create_cache_backend",
    "LayeredCache",
    "CacheKeys",
    "CacheTTL",
]
