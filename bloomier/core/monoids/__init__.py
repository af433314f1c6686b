"""
Monoid implementations for Bloom filters

Inspired by Twitter Algebird
"""
from bloomier.core.monoids.bloom_monoid import (
    BloomFilterMonoid,
    BloomFilterUnionMonoid,
    BloomFilterIntersectionMonoid,
    FilterAggregator,
)

__all__ = [
    'BloomFilterMonoid',
    'BloomFilterUnionMonoid',
    'BloomFilterIntersectionMonoid',
    'FilterAggregator',
]
