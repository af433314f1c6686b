"""
Examples of seeded Bloom filters

Demonstrates sizing, key types, persistence and monoid merging
"""
import random

from bloomier import configure_logging
from bloomier.core.monoids.bloom_monoid import (
    BloomFilterUnionMonoid,
    BloomFilterIntersectionMonoid,
    FilterAggregator,
)
from bloomier.core.sketches.bloom_filter import BloomFilter
from bloomier.models.snapshot import FilterSnapshot


def example_1_sizing_and_false_positives():
    """
    Example 1: Size a filter from capacity and target error rate

    Use case: "Have we seen this 32-byte digest before?"
    """
    print("=" * 60)
    print("Example 1: Sizing and Measured False Positive Rate")
    print("=" * 60)

    target = 0.001
    n = 50_000
    bf = BloomFilter.with_capacity(n, target, seed=666)
    print(f"  n={n}, p={target} -> m={bf.m} bits ({bf.m // 8 // 1024} KB), k={bf.k}")

    rng = random.Random(0x1638567)
    for _ in range(n):
        bf.add(rng.randbytes(32))

    probes = 200_000
    false_positives = sum(1 for _ in range(probes) if bf.contains(rng.randbytes(32)))

    print(f"  Estimated population: {bf.estimated_population():.0f}")
    print(f"  Predicted error rate: {bf.current_error_rate():.6f}")
    print(f"  Measured error rate:  {false_positives / probes:.6f}")
    print()


def example_2_key_types():
    """
    Example 2: Integer and text keys

    Use case: Track numeric account ids and user names without storing them
    """
    print("=" * 60)
    print("Example 2: Key Types")
    print("=" * 60)

    accounts = BloomFilter.with_capacity(1000, 0.01, seed=7, key_type="int64")
    for account_id in range(10_000_000, 10_000_500):
        accounts.add(account_id)

    names = BloomFilter.with_capacity(1000, 0.01, seed=7, key_type="text")
    for name in ("alice", "bob", "zoë"):
        names.add(name)

    print(f"  account 10000042 seen: {10_000_042 in accounts}")
    print(f"  account 99 seen:       {99 in accounts}")
    print(f"  'zoë' seen:            {'zoë' in names}")
    print(f"  'mallory' seen:        {'mallory' in names}")
    print()


def example_3_persist_and_resume():
    """
    Example 3: Persist as 64-bit words and resume later

    Use case: Rebuild a filter in another process without re-adding keys
    """
    print("=" * 60)
    print("Example 3: Persist and Resume")
    print("=" * 60)

    bf = BloomFilter.with_capacity(10_000, 0.001, seed=42, key_type="text")
    for i in range(5000):
        bf.add(f"session_{i}")

    data = bf.snapshot().model_dump_json()
    print(f"  Snapshot: {len(data)} bytes of JSON, {len(bf.to_words())} words")

    restored = BloomFilter.from_snapshot(FilterSnapshot.model_validate_json(data))
    print(f"  session_1234 in restored filter: {'session_1234' in restored}")
    print(f"  Same bits: {restored.to_words() == bf.to_words()}")
    print()


def example_4_merge_worker_filters():
    """
    Example 4: Union and intersection of filters built separately

    Use case: Workers each see part of a stream; merge to answer globally
    """
    print("=" * 60)
    print("Example 4: Merging Worker Filters")
    print("=" * 60)

    union = BloomFilterUnionMonoid(10_000, 0.001, seed=3, key_type="text")
    aggregator = FilterAggregator(union)

    workers = []
    for worker in range(4):
        bf = union.zero()
        for user_id in range(worker * 200, worker * 200 + 300):
            bf.add(f"user_{user_id}")
        workers.append(bf)
        aggregator.append(bf)
        print(f"  Worker {worker}: ~{bf.estimated_population():.0f} users")

    merged = aggregator.get()
    print(f"\n  Merged: ~{merged.estimated_population():.0f} distinct users")

    common = BloomFilterIntersectionMonoid(10_000, 0.001, seed=3, key_type="text")
    overlap = common.find_common(workers[:2])
    for user in ("user_250", "user_10", "user_450"):
        print(f"  {user}: merged={user in merged}, in workers 0 and 1={user in overlap}")
    print()


if __name__ == "__main__":
    configure_logging()

    example_1_sizing_and_false_positives()
    example_2_key_types()
    example_3_persist_and_resume()
    example_4_merge_worker_filters()

    print("=" * 60)
    print("All examples completed!")
    print("=" * 60)
