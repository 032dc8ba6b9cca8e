"""
Result cache for generated content.

Entries are keyed by feature and resource (``faq_42``) and expire after a
fixed TTL. The only other way out is invalidate(), called when the resource
is edited.
"""

import logging
from typing import Optional, Union

from ..models import Feature, FeatureValue, value_from_data, value_to_data
from .base import KVCache, TransientStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = 86400


def cache_key(resource_id: Union[int, str], feature: Feature) -> str:
    return f"{feature.value}_{resource_id}"


class CacheLayer:
    """Caches generated results per (resource, feature)."""

    def __init__(self, store: TransientStore, ttl: int = DEFAULT_TTL):
        self.cache = KVCache(store)
        self.ttl = ttl

    def get(self, resource_id: Union[int, str], feature: Feature) -> Optional[FeatureValue]:
        data = self.cache.get(cache_key(resource_id, feature))
        if data is None:
            return None
        try:
            value = value_from_data(feature, data)
        except (KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {cache_key(resource_id, feature)}: {e}")
            self.cache.delete(cache_key(resource_id, feature))
            return None
        logger.debug(f"{feature.value} for resource {resource_id} retrieved from cache")
        return value

    def put(
        self,
        resource_id: Union[int, str],
        feature: Feature,
        value: FeatureValue,
        ttl: Optional[int] = None,
    ) -> None:
        self.cache.set(cache_key(resource_id, feature), value_to_data(feature, value), ttl or self.ttl)
        logger.debug(f"{feature.value} for resource {resource_id} cached for {ttl or self.ttl}s")

    def invalidate(self, resource_id: Union[int, str]) -> None:
        """Drop every cached feature for a resource."""
        for feature in Feature:
            self.cache.delete(cache_key(resource_id, feature))
        logger.debug(f"Cache cleared for resource {resource_id}")
