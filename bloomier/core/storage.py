"""
Redis storage layer for Bloom filters
Persists named filters as JSON snapshots (parameters + packed bit words)
"""
import logging
from typing import Any, Optional

import redis
from redis import Redis

from bloomier.config import settings
from bloomier.core.sketches.bloom_filter import BloomFilter
from bloomier.models.snapshot import FilterSnapshot

logger = logging.getLogger(__name__)


class RedisFilterStore:
    """
    Redis storage abstraction for named Bloom filters

    Filters live under "{key_prefix}{name}" as FilterSnapshot JSON.
    Read-modify-write helpers are not atomic across processes.
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        key_prefix: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        """
        Initialize Redis filter store

        Args:
            redis_client: Optional Redis client (creates new if None)
            key_prefix: Key namespace (default: settings.STORE_KEY_PREFIX)
            ttl_seconds: Expiry for saved filters, 0 for none (default: settings)
        """
        if redis_client:
            self.redis = redis_client
        else:
            self.redis = redis.from_url(
                settings.get_redis_url(),
                decode_responses=False,
            )

        self.key_prefix = settings.STORE_KEY_PREFIX if key_prefix is None else key_prefix
        self.ttl_seconds = settings.STORE_TTL_SECONDS if ttl_seconds is None else ttl_seconds

    def ping(self) -> bool:
        """Check Redis connection"""
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def save(self, name: str, bloom: BloomFilter) -> None:
        """
        Save a filter under a name, replacing any previous one

        Args:
            name: Filter name
            bloom: Filter to persist
        """
        key = self.key(name)
        data = bloom.snapshot().model_dump_json()
        try:
            if self.ttl_seconds:
                self.redis.setex(key, self.ttl_seconds, data)
            else:
                self.redis.set(key, data)
        except redis.RedisError as e:
            logger.error(f"Failed to save filter {name}: {e}", exc_info=True)
            raise
        logger.debug(f"Saved filter {name} ({bloom.m} bits, k={bloom.k}) to {key}")

    def load(self, name: str) -> Optional[BloomFilter]:
        """
        Load a filter by name

        Returns:
            The filter, or None if no filter is stored under that name
        """
        key = self.key(name)
        try:
            data = self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Failed to load filter {name}: {e}", exc_info=True)
            raise
        if data is None:
            return None

        snapshot = FilterSnapshot.model_validate_json(data)
        logger.debug(f"Loaded filter {name} from {key}")
        return BloomFilter.from_snapshot(snapshot)

    def exists(self, name: str) -> bool:
        return bool(self.redis.exists(self.key(name)))

    def delete(self, name: str) -> bool:
        """
        Delete a filter

        Returns:
            True if a filter was removed
        """
        return bool(self.redis.delete(self.key(name)))

    def add_to_filter(self, name: str, item: Any) -> BloomFilter:
        """
        Add an item to a named filter, creating it from settings if needed

        Args:
            name: Filter name
            item: Key of the filter's key type

        Returns:
            The updated filter
        """
        bloom = self.load(name)
        if bloom is None:
            bloom = BloomFilter.with_capacity(
                settings.BLOOM_EXPECTED_INSERTIONS,
                settings.BLOOM_FALSE_POSITIVE_RATE,
                seed=settings.BLOOM_SEED,
                key_type=settings.BLOOM_KEY_TYPE,
            )
            logger.info(f"Created filter {name}: m={bloom.m}, k={bloom.k}")

        bloom.add(item)
        self.save(name, bloom)
        return bloom

    def check_filter(self, name: str, item: Any) -> bool:
        """
        Check if item might be in a named filter

        Returns:
            True if item might exist (or false positive)
            False if item definitely does NOT exist, or the filter is missing
        """
        bloom = self.load(name)
        if bloom is None:
            return False

        return bloom.contains(item)
