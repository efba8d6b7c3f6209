"""
Caching Utilities

In-memory result cache and dataset store, both with TTL expiry and an
injectable clock. Neither is a module-level singleton: the application
builds them once and hands them to the components that need them.
"""

import hashlib
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Optional

from core.dataset import Dataset
from core.logging_config import cache_logger as logger


Clock = Callable[[], float]


class TTLCache:
    """Thread-safe LRU cache with TTL support."""

    def __init__(
        self,
        maxsize: int = 128,
        ttl_seconds: int = 3600,
        clock: Clock = time.monotonic,
    ):
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        # key -> (value, expires_at)
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = Lock()

    @staticmethod
    def make_key(*parts: Any) -> str:
        """Create cache key from parts."""
        key_string = "|".join(str(part) for part in parts)
        return hashlib.md5(key_string.encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        with self._lock:
            if key not in self._cache:
                return None

            value, expires_at = self._cache[key]
            if self.clock() >= expires_at:
                del self._cache[key]
                return None

            # Move to end (most recently accessed)
            self._cache.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Set value in cache."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            # Remove oldest if at capacity
            while len(self._cache) >= self.maxsize:
                self._cache.popitem(last=False)

            self._cache[key] = (value, self.clock() + ttl)

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Any],
        ttl_seconds: Optional[int] = None,
    ) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        value = self.get(key)
        if value is not None:
            logger.debug(f"Cache hit {key}")
            return value

        value = compute()
        self.set(key, value, ttl_seconds)
        return value

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> int:
        """Clear all cache entries."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        return self.get(key) is not None


class DatasetStore:
    """
    Key-value store for datasets with expiry and field scans.

    Holds the latest version of each dataset by id.
    """

    INDEXED_FIELDS = ("source", "name")

    def __init__(self, ttl_seconds: int = 24 * 3600, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        # id -> (dataset, stored_at)
        self._datasets: dict[str, tuple[Dataset, float]] = {}
        self._lock = Lock()

    def set(self, dataset: Dataset) -> None:
        """Store (or replace) a dataset."""
        with self._lock:
            self._datasets[dataset.id] = (dataset, self.clock())

    def get(self, dataset_id: str) -> Optional[Dataset]:
        """Get a dataset unless it has expired."""
        with self._lock:
            entry = self._datasets.get(dataset_id)
            if entry is None:
                return None

            dataset, stored_at = entry
            if self.clock() - stored_at > self.ttl_seconds:
                del self._datasets[dataset_id]
                return None

            return dataset

    def delete(self, dataset_id: str) -> bool:
        """Delete a dataset."""
        with self._lock:
            if dataset_id in self._datasets:
                del self._datasets[dataset_id]
                return True
            return False

    def scan(self, field: Optional[str] = None, value: Any = None) -> list[Dataset]:
        """
        List live datasets, optionally those whose indexed field equals value.

        Expired entries are purged as a side effect.
        """
        if field is not None and field not in self.INDEXED_FIELDS:
            raise ValueError(f"Field '{field}' is not indexed")

        with self._lock:
            now = self.clock()
            active = []
            expired = []
            for dataset_id, (dataset, stored_at) in self._datasets.items():
                if now - stored_at > self.ttl_seconds:
                    expired.append(dataset_id)
                    continue
                if field is None or self._field_value(dataset, field) == value:
                    active.append(dataset)

            for dataset_id in expired:
                del self._datasets[dataset_id]

            return active

    @staticmethod
    def _field_value(dataset: Dataset, field: str) -> Any:
        raw = getattr(dataset, field)
        return getattr(raw, "value", raw)
