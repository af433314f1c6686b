"""
Bloom Filter Monoid implementation

Enables composable membership testing across:
- Batches (union of filters built independently)
- Workers (merge partial results with the same seed and size)
- Overlap queries (intersection of filters)

Laws every monoid here satisfies for filters sharing seed, k, m and key type:
1. Identity: plus(zero, x) == x and plus(x, zero) == x
2. Associativity: plus(plus(a, b), c) == plus(a, plus(b, c))
"""
import logging
from functools import reduce
from typing import Any, Iterable, List, Optional

from algesnake.abstract import Monoid, Semigroup

from bloomier.config import settings
from bloomier.core.sketches.bloom_filter import BloomFilter

logger = logging.getLogger(__name__)


class BloomFilterMonoid(Semigroup[BloomFilter]):
    """
    Semigroup (not full Monoid) for Bloom Filters

    Filters with different seed/k/m cannot be merged, so there is no
    parameter-free "zero". Operands just have to agree with each other.

    Example usage:
        semigroup = BloomFilterMonoid()

        bf_a = BloomFilter.with_capacity(100_000, 0.001, seed=7, key_type="text")
        bf_a.add("user1")

        bf_b = BloomFilter.with_capacity(100_000, 0.001, seed=7, key_type="text")
        bf_b.add("user2")

        bf_all = semigroup.plus(bf_a, bf_b)
        print("user2" in bf_all)  # True
    """

    def plus(self, a: BloomFilter, b: BloomFilter) -> BloomFilter:
        """
        Union of two Bloom filters (OR operation)

        Raises:
            InvalidParameter: If filters have incompatible parameters
        """
        return a.union(b)

    def intersection(self, a: BloomFilter, b: BloomFilter) -> BloomFilter:
        """
        Intersection of two Bloom filters (AND operation)

        Note: This can increase false positive rate!
        """
        return a.intersection(b)

    def sum_union(self, filters: List[BloomFilter]) -> BloomFilter:
        """
        Union of multiple Bloom filters

        Args:
            filters: Non-empty list of compatible filters

        Returns:
            Combined filter (OR of all inputs)

        Raises:
            ValueError: If filters is empty
        """
        if not filters:
            raise ValueError("Cannot union empty list of Bloom filters")
        return reduce(self.plus, filters)


class BloomFilterUnionMonoid(Monoid[BloomFilter]):
    """
    Full Monoid for Bloom Filter union with fixed parameters

    Every filter shares the same seed, sizing and key type,
    so the empty filter is a proper zero element.
    """

    def __init__(
        self,
        expected_insertions: Optional[int] = None,
        false_positive_rate: Optional[float] = None,
        seed: Optional[int] = None,
        key_type: Optional[str] = None,
    ):
        """
        Initialize with fixed Bloom filter parameters (defaults from settings)

        Args:
            expected_insertions: Capacity for all filters
            false_positive_rate: Target error rate for all filters
            seed: Hash seed for all filters
            key_type: Key adapter for all filters
        """
        if expected_insertions is None:
            expected_insertions = settings.BLOOM_EXPECTED_INSERTIONS
        if false_positive_rate is None:
            false_positive_rate = settings.BLOOM_FALSE_POSITIVE_RATE
        self.expected_insertions = expected_insertions
        self.false_positive_rate = false_positive_rate
        self.seed = settings.BLOOM_SEED if seed is None else seed
        self.key_type = key_type or settings.BLOOM_KEY_TYPE

    def _empty(self) -> BloomFilter:
        return BloomFilter.with_capacity(
            self.expected_insertions,
            self.false_positive_rate,
            seed=self.seed,
            key_type=self.key_type,
        )

    def zero(self) -> BloomFilter:
        """
        Identity element: empty Bloom filter

        Returns:
            Empty Bloom filter with this monoid's parameters
        """
        return self._empty()

    def plus(self, a: BloomFilter, b: BloomFilter) -> BloomFilter:
        """Union operation"""
        return a.union(b)

    def sum_filters(self, filters: Iterable[BloomFilter]) -> BloomFilter:
        """
        Merge filters built independently

        Example:
            monoid = BloomFilterUnionMonoid(10_000, 0.01, seed=3)
            merged = monoid.sum_filters([bf_worker_1, bf_worker_2])
        """
        return reduce(self.plus, filters, self.zero())


class BloomFilterIntersectionMonoid(BloomFilterUnionMonoid):
    """
    Monoid for Bloom Filter intersection

    Note: Intersection increases false positive rate!
    Use with caution.
    """

    def zero(self) -> BloomFilter:
        """
        Identity element: full filter (all bits set)

        For intersection, identity is the "everything" element
        """
        bf = self._empty()
        bf.bits.fill()
        return bf

    def plus(self, a: BloomFilter, b: BloomFilter) -> BloomFilter:
        """Intersection operation"""
        return a.intersection(b)

    def find_common(self, filters: Iterable[BloomFilter]) -> BloomFilter:
        """
        Find items present in ALL filters

        Returns:
            Filter that reports only items every input may contain
        """
        return self.sum_filters(filters)


class FilterAggregator:
    """
    Running merge of filters that arrive one at a time

    Starts from the monoid's zero, so a union aggregator begins empty
    and an intersection aggregator begins full.

    Example usage:
        aggregator = FilterAggregator(BloomFilterUnionMonoid(10_000, 0.01, seed=3))
        for batch in batches:
            aggregator.append(batch)
        "user1" in aggregator
    """

    def __init__(self, monoid: BloomFilterUnionMonoid):
        self.monoid = monoid
        self.filter = monoid.zero()
        self.merged = 0

    def append(self, bf: BloomFilter) -> "FilterAggregator":
        """Merge one filter into the running result"""
        self.filter = self.monoid.plus(self.filter, bf)
        self.merged += 1
        return self

    def append_all(self, filters: Iterable[BloomFilter]) -> "FilterAggregator":
        for bf in filters:
            self.append(bf)
        return self

    def get(self) -> BloomFilter:
        return self.filter

    def reset(self) -> "FilterAggregator":
        """Drop everything merged so far"""
        self.filter = self.monoid.zero()
        self.merged = 0
        return self

    def merge(self, other: "FilterAggregator") -> "FilterAggregator":
        """
        Fold another aggregator's result into this one

        Raises:
            InvalidParameter: If the two aggregators build incompatible filters
        """
        self.filter = self.monoid.plus(self.filter, other.filter)
        self.merged += other.merged
        logger.debug(f"Merged aggregator: {self.merged} filters in {self.filter!r}")
        return self

    def __contains__(self, key: Any) -> bool:
        return key in self.filter
