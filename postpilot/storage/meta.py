"""
Permanent per-resource values.

Hosts keep these next to the resource itself (post metadata); here they
live in the same TransientStore as the cache, written without a TTL.
"""

import logging
from typing import Any, Optional, Union

from .base import TransientStore

logger = logging.getLogger(__name__)


class ResourceMetaStore:
    """Named values attached to a resource that never expire."""

    def __init__(self, store: TransientStore, prefix: str = "postpilot_meta_"):
        self.store = store
        self.prefix = prefix

    def _key(self, resource_id: Union[int, str], name: str) -> str:
        return f"{self.prefix}{resource_id}_{name}"

    def get(self, resource_id: Union[int, str], name: str, default: Optional[Any] = None) -> Any:
        value = self.store.get(self._key(resource_id, name))
        return default if value is None else value

    def set(self, resource_id: Union[int, str], name: str, value: Any) -> None:
        self.store.set(self._key(resource_id, name), value, ttl=None)
        logger.debug(f"Saved {name} for resource {resource_id}")

    def delete(self, resource_id: Union[int, str], name: str) -> None:
        self.store.delete(self._key(resource_id, name))
