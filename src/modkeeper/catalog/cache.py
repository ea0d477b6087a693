"""
Time-boxed cache for the resolved Registry.

The cache is a plain value object owned by one engine instance. It holds the last
Registry and when it was stored, and answers whether that value is still fresh.
The clock is injectable so expiry can be tested without waiting.
"""

import time
from typing import Callable, Optional

from modkeeper.constants import REGISTRY_CACHE_TTL_SECONDS
from modkeeper.log_utils import logger

from .models import Registry

Clock = Callable[[], float]


class RegistryCache:
    """
    Holds at most one Registry for `ttl_seconds`.

    Not synchronized: callers serialize get/store/invalidate on one instance.
    """

    def __init__(
        self,
        ttl_seconds: float = REGISTRY_CACHE_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._registry: Optional[Registry] = None
        self._stored_at: Optional[float] = None

    @property
    def age(self) -> Optional[float]:
        """Seconds since the cached value was stored, or None when empty."""
        if self._stored_at is None:
            return None
        return self.clock() - self._stored_at

    def is_fresh(self) -> bool:
        age = self.age
        return self._registry is not None and age is not None and age < self.ttl_seconds

    def get(self) -> Optional[Registry]:
        """Return the cached Registry if it has not expired."""
        if self.is_fresh():
            return self._registry
        return None

    def store(self, registry: Registry) -> Registry:
        self._registry = registry
        self._stored_at = self.clock()
        return registry

    def invalidate(self) -> None:
        if self._registry is not None:
            logger.debug("Registry cache cleared")
        self._registry = None
        self._stored_at = None
