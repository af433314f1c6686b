"""
Tests for Bloom Filter implementation
"""
import math
import random

import pytest
from pydantic import ValidationError

from bloomier.core.bit_array import BitArray
from bloomier.core.errors import InvalidParameter
from bloomier.core.hashing import MASK64
from bloomier.core.sketches.bloom_filter import (
    BloomFilter,
    HashParams,
    optimal_k,
    optimal_m,
    population,
)
from bloomier.models.snapshot import FilterSnapshot


def random_keys(rng: random.Random, count: int, size: int = 32):
    return [rng.randbytes(size) for _ in range(count)]


class TestSizing:
    """Test optimal m / k formulas"""

    def test_reference_sizing(self):
        """1M insertions at 0.0125% need ~18.7M bits and 13 indices"""
        m = optimal_m(1_000_000, 0.000125)
        assert 18_705_600 <= m <= 18_705_750
        assert optimal_k(1_000_000, m) == 13

    def test_minimum_m(self):
        assert optimal_m(1, 0.5) == 8

    def test_minimum_k(self):
        assert optimal_k(1000, 8) == 1

    def test_zero_error_rate_substituted(self):
        """p == 0 is replaced by the smallest positive double"""
        m = optimal_m(10, 0.0)
        assert isinstance(m, int)
        assert 15_000 < m < 16_000

    @pytest.mark.parametrize("n, p", [(0, 0.01), (-5, 0.01), (100, 1.0), (100, -0.1), (100, 1.5)])
    def test_invalid_capacity_parameters(self, n, p):
        with pytest.raises(InvalidParameter):
            BloomFilter.with_capacity(n, p)

    def test_invalid_explicit_parameters(self):
        with pytest.raises(InvalidParameter):
            BloomFilter.from_params(0, 0, 64)
        with pytest.raises(InvalidParameter):
            BloomFilter.from_params(0, 1, 7)
        with pytest.raises(InvalidParameter):
            BloomFilter.from_params(0, 9, 8)

    def test_invalid_parameter_is_value_error(self):
        with pytest.raises(ValueError):
            BloomFilter.with_capacity(0, 0.01)

    def test_params_normalize_seed(self):
        assert HashParams(-1, 3, 64) == HashParams(MASK64, 3, 64)

    def test_with_capacity_sizes_filter(self):
        bf = BloomFilter.with_capacity(1000, 0.01, seed=5)
        assert bf.m == optimal_m(1000, 0.01)
        assert bf.k == optimal_k(1000, bf.m)
        assert bf.seed == 5
        assert len(bf.bits) == bf.m

    def test_with_capacity_keywords(self):
        bf = BloomFilter.with_capacity(
            expected_insertions=1000, false_positive_rate=0.01, seed=5, key_type="text"
        )
        assert bf.m == optimal_m(1000, 0.01)
        assert bf.seed == 5
        assert bf.key_type == "text"


class TestBloomFilter:
    """Test Bloom Filter functionality"""

    def test_no_false_negatives(self):
        """Every added key is reported present"""
        bf = BloomFilter.with_capacity(10_000, 0.01, seed=666)
        keys = random_keys(random.Random(1), 10_000)

        for key in keys:
            bf.add(key)

        for key in keys:
            assert bf.contains(key)
            assert key in bf

    def test_empty_filter_contains_nothing(self):
        bf = BloomFilter.with_capacity(1000, 0.01)
        assert not bf.contains(b"anything")

    def test_empty_key(self):
        bf = BloomFilter.with_capacity(1000, 0.01)
        bf.add(b"")
        assert b"" in bf

    def test_add_is_idempotent(self):
        bf = BloomFilter.with_capacity(1000, 0.01, seed=3)
        bf.add(b"once")
        words = bf.to_words()
        bf.add(b"once")
        assert bf.to_words() == words

    def test_add_sets_exactly_k_bits(self):
        bf = BloomFilter.with_capacity(1000, 0.01, seed=3)
        bf.add(b"single")
        assert bf.bits.cardinality() == bf.k

    @pytest.mark.parametrize("k,m,count", [(3, 64, 2000), (7, 1024, 20000)])
    def test_power_of_two_sizes_accept_every_key(self, k, m, count):
        """Small power-of-two filters saturate but never refuse a key"""
        bf = BloomFilter.from_params(0, k, m)
        keys = random_keys(random.Random(m), count)

        for key in keys:
            bf.add(key)

        assert all(key in bf for key in keys)

    def test_false_positive_rate(self):
        """Measured rate stays close to target on a scaled-down scenario"""
        target = 0.01
        n = 20_000
        bf = BloomFilter.with_capacity(n, target, seed=666)
        rng = random.Random(0x1638567)

        for key in random_keys(rng, n):
            bf.add(key)

        probes = 100_000
        false_positives = sum(1 for key in random_keys(rng, probes) if bf.contains(key))
        rate = false_positives / probes

        assert rate <= target * 1.25, f"Measured rate {rate} too far above {target}"

    @pytest.mark.slow
    def test_false_positive_rate_full_scale(self):
        """1M random 32-byte keys, 4M probes, rate within 5% of target"""
        target = 0.000125
        n = 1_000_000
        bf = BloomFilter.with_capacity(n, target, seed=666)
        rng = random.Random(0x1638567)

        added = random_keys(rng, n)
        for key in added:
            bf.add(key)
        for key in added:
            assert key in bf

        probes = n * 4
        false_positives = 0
        for _ in range(probes):
            if bf.contains(rng.randbytes(32)):
                false_positives += 1

        rate = false_positives / probes
        assert rate <= target * 1.05, f"Target {target}, measured {rate}"

    def test_clear_resets_membership(self):
        bf = BloomFilter.with_capacity(1000, 0.01, seed=9)
        keys = random_keys(random.Random(2), 500)
        for key in keys:
            bf.add(key)

        bf.clear()

        assert bf.bits.cardinality() == 0
        assert bf.estimated_population() == 0.0
        for key in keys:
            assert key not in bf

    def test_same_seed_same_bits(self):
        keys = random_keys(random.Random(3), 200)
        a = BloomFilter.with_capacity(1000, 0.01, seed=77)
        b = BloomFilter.with_capacity(1000, 0.01, seed=77)
        for key in keys:
            a.add(key)
            b.add(key)
        assert a.to_words() == b.to_words()

    def test_different_seed_different_bits(self):
        keys = random_keys(random.Random(3), 200)
        a = BloomFilter.with_capacity(1000, 0.01, seed=77)
        b = BloomFilter.with_capacity(1000, 0.01, seed=78)
        for key in keys:
            a.add(key)
            b.add(key)
        assert a.to_words() != b.to_words()

    def test_native_and_pure_filters_agree(self):
        native = BloomFilter.with_capacity(1000, 0.01, seed=12, native=True)
        pure = BloomFilter.with_capacity(1000, 0.01, seed=12, native=False)
        for key in random_keys(random.Random(4), 300):
            assert native.hashes(key) == pure.hashes(key)

    def test_wide_seed(self):
        bf = BloomFilter.with_capacity(500, 0.01, seed=(1 << 63) + 5)
        keys = random_keys(random.Random(5), 200)
        for key in keys:
            bf.add(key)
        assert all(key in bf for key in keys)

    def test_hashes_are_distinct(self):
        bf = BloomFilter.with_capacity(100, 0.001)
        indices = bf.hashes(b"key")
        assert len(indices) == bf.k
        assert len(set(indices)) == bf.k
        assert list(bf.locations(b"key")) == indices

    def test_identity_hash_stable(self):
        bf = BloomFilter.with_capacity(100, 0.01, seed=8)
        assert bf.identity_hash(b"key") == bf.identity_hash(b"key")


class TestKeyTypes:
    """Test filters over non-bytes keys"""

    def test_int32_keys(self):
        bf = BloomFilter.with_capacity(2000, 0.01, key_type="int32")
        for i in range(-1000, 1000):
            bf.add(i)
        assert all(i in bf for i in range(-1000, 1000))

    def test_int64_keys(self):
        bf = BloomFilter.with_capacity(1000, 0.01, key_type="int64")
        values = [2**40 + i * 7919 for i in range(1000)]
        for value in values:
            bf.add(value)
        assert all(value in bf for value in values)

    def test_text_keys(self):
        bf = BloomFilter.with_capacity(1000, 0.01, key_type="text")
        bf.add("Test")
        bf.add("naïve café")
        assert "Test" in bf
        assert "naïve café" in bf
        assert "definitely-absent" not in bf

    def test_wrong_key_type(self):
        bf = BloomFilter.with_capacity(1000, 0.01, key_type="text")
        with pytest.raises(TypeError):
            bf.add(b"bytes")

    def test_out_of_range_int32(self):
        bf = BloomFilter.with_capacity(1000, 0.01, key_type="int32")
        with pytest.raises(InvalidParameter):
            bf.add(2**33)


class TestPopulation:
    """Test population estimate"""

    def test_empty(self):
        bf = BloomFilter.with_capacity(1000, 0.01)
        assert bf.estimated_population() == 0.0
        assert bf.current_error_rate() == 0.0

    def test_accuracy(self):
        n = 10_000
        bf = BloomFilter.with_capacity(n, 0.01, seed=1)
        for key in random_keys(random.Random(6), n):
            bf.add(key)

        estimate = bf.estimated_population()
        assert 0.95 * n <= estimate <= 1.05 * n

    def test_error_rate_near_target_at_capacity(self):
        n = 10_000
        bf = BloomFilter.with_capacity(n, 0.01, seed=1)
        for key in random_keys(random.Random(6), n):
            bf.add(key)

        assert 0.005 <= bf.current_error_rate() <= 0.015

    def test_monotonic(self):
        """Estimate never decreases as distinct keys are added"""
        bf = BloomFilter.with_capacity(1000, 0.01, seed=2)
        previous = bf.estimated_population()
        for i, key in enumerate(random_keys(random.Random(7), 3000)):
            bf.add(key)
            if i % 100 == 0:
                current = bf.estimated_population()
                assert current >= previous
                previous = current

    def test_saturated_is_infinite(self):
        bf = BloomFilter.from_params(0, 1, 8)
        for key in random_keys(random.Random(8), 1000):
            bf.add(key)

        assert bf.fill_ratio() == 1.0
        assert math.isinf(bf.estimated_population())
        assert bf.current_error_rate() == 1.0

    def test_population_formula(self):
        assert population(0, 3, 100) == 0.0
        assert population(100, 3, 100) == math.inf
        assert population(50, 1, 100) == pytest.approx(100 * math.log(2))


class TestPersistence:
    """Test word-array persistence and snapshots"""

    def _filled(self):
        bf = BloomFilter.with_capacity(1000, 0.01, seed=666)
        keys = random_keys(random.Random(9), 800)
        for key in keys:
            bf.add(key)
        return bf, keys

    def test_word_layout(self):
        bf = BloomFilter.from_params(0, 1, 100)
        assert len(bf.to_words()) == 2

        bf.bits.set(0)
        bf.bits.set(65)
        bf.bits.set(99)
        assert bf.to_words() == [1, (1 << 1) | (1 << 35)]

    def test_round_trip_words(self):
        original, keys = self._filled()
        restored = BloomFilter.from_params(
            original.seed, original.k, original.m, words=original.to_words()
        )

        probes = keys + random_keys(random.Random(10), 2000)
        for key in probes:
            assert restored.contains(key) == original.contains(key)

    def test_round_trip_bytes(self):
        original, keys = self._filled()
        restored = BloomFilter.from_bytes(
            original.to_bytes(), original.seed, original.k, original.m
        )
        assert restored.to_words() == original.to_words()
        assert all(key in restored for key in keys)

    def test_padding_ignored_on_read(self):
        bf = BloomFilter.from_params(0, 1, 100, words=[0, MASK64])
        assert bf.to_words() == [0, (1 << 36) - 1]
        assert bf.bits.cardinality() == 36

    def test_short_word_list_padded(self):
        bf = BloomFilter.from_params(0, 1, 200, words=[3])
        assert bf.to_words() == [3, 0, 0, 0]

    def test_too_many_words(self):
        with pytest.raises(InvalidParameter):
            BloomFilter.from_params(0, 1, 64, words=[0, 0])

    def test_signed_words_accepted(self):
        bf = BloomFilter.from_params(0, 1, 64, words=[-1])
        assert bf.to_words() == [MASK64]

    @pytest.mark.parametrize("word", [1 << 64, (1 << 64) + 1, -(1 << 63) - 1])
    def test_out_of_range_words(self, word):
        with pytest.raises(InvalidParameter):
            BloomFilter.from_params(0, 1, 64, words=[word])

    def test_bit_array_size_mismatch(self):
        with pytest.raises(InvalidParameter):
            BloomFilter(HashParams(0, 1, 64), bits=BitArray(128))

    def test_snapshot_json_round_trip(self):
        original, keys = self._filled()
        data = original.snapshot().model_dump_json()

        restored = BloomFilter.from_snapshot(FilterSnapshot.model_validate_json(data))

        assert restored.params == original.params
        assert restored.key_type == original.key_type
        assert restored.to_words() == original.to_words()
        assert all(key in restored for key in keys)

    def test_snapshot_validation(self):
        with pytest.raises(ValidationError):
            FilterSnapshot(seed=0, k=0, m=64)
        with pytest.raises(ValidationError):
            FilterSnapshot(seed=0, k=1, m=4)
        with pytest.raises(ValidationError):
            FilterSnapshot(seed=0, k=1, m=64, words=[0, 0])
        with pytest.raises(ValidationError):
            FilterSnapshot(seed=0, k=1, m=64, words=[2**64])

    def test_snapshot_normalizes_signed_words(self):
        snapshot = FilterSnapshot(seed=0, k=1, m=64, words=[-1])
        assert snapshot.words == [MASK64]


class TestSetOperations:
    """Test union / intersection"""

    def test_union(self):
        a = BloomFilter.with_capacity(1000, 0.01, seed=4, key_type="text")
        b = BloomFilter.with_capacity(1000, 0.01, seed=4, key_type="text")
        a.add("user1")
        b.add("user2")

        merged = a.union(b)

        assert "user1" in merged
        assert "user2" in merged
        assert "user2" not in a

    def test_intersection(self):
        a = BloomFilter.with_capacity(1000, 0.01, seed=4, key_type="text")
        b = BloomFilter.with_capacity(1000, 0.01, seed=4, key_type="text")
        for name in ("shared", "only_a"):
            a.add(name)
        for name in ("shared", "only_b"):
            b.add(name)

        common = a.intersection(b)

        assert "shared" in common

    def test_mismatched_seed(self):
        a = BloomFilter.with_capacity(1000, 0.01, seed=1)
        b = BloomFilter.with_capacity(1000, 0.01, seed=2)
        with pytest.raises(InvalidParameter):
            a.union(b)

    def test_mismatched_key_type(self):
        a = BloomFilter.with_capacity(1000, 0.01, key_type="text")
        b = BloomFilter.with_capacity(1000, 0.01, key_type="bytes")
        with pytest.raises(InvalidParameter):
            a.intersection(b)

    def test_copy_is_independent(self):
        a = BloomFilter.with_capacity(1000, 0.01)
        b = a.copy()
        b.add(b"only in copy")
        assert b"only in copy" not in a


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
