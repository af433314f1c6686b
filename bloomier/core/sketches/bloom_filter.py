"""
Bloom Filter implementation for set membership queries
Fast probabilistic "has this been seen before?" checks
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional

from bloomier.core.bit_array import BitArray
from bloomier.core.errors import InvalidParameter
from bloomier.core.hashing import MASK64, MixHasher
from bloomier.models.snapshot import FilterSnapshot

logger = logging.getLogger(__name__)

LN2 = math.log(2)
# Smallest positive double, stands in for a zero error rate
MIN_ERROR_RATE = math.ulp(0.0)


def optimal_m(n: int, p: float) -> int:
    """
    Calculate optimal bit array size

    m = -n*ln(p) / (ln(2)^2), at least 8

    Args:
        n: Expected insertions (positive)
        p: Target false positive rate, 0 <= p < 1
    """
    if n <= 0:
        raise InvalidParameter(f"Expected insertions must be positive, got {n}")
    if not 0 <= p < 1:
        raise InvalidParameter(f"False positive rate must be in (0, 1), got {p}")
    if p == 0:
        p = MIN_ERROR_RATE
    return max(8, _round(-n * math.log(p) / (LN2 * LN2)))


def optimal_k(n: int, m: int) -> int:
    """
    Calculate optimal number of bit positions per key

    k = (m/n) * ln(2), at least 1
    """
    if n <= 0:
        raise InvalidParameter(f"Expected insertions must be positive, got {n}")
    return max(1, _round(m / n * LN2))


def population(set_bits: int, k: int, m: int) -> float:
    """
    Estimate number of distinct items from bit saturation

    n ≈ -m/k * ln(1 - X/m), where X is the number of set bits.
    Infinite once every bit is set.
    """
    if set_bits == 0:
        return 0.0
    if set_bits >= m:
        return math.inf
    return -m / k * math.log1p(-set_bits / m)


def _round(x: float) -> int:
    # Half-up, not banker's rounding
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class HashParams:
    """Immutable (seed, k, m) of one filter"""

    seed: int
    k: int
    m: int

    def __post_init__(self):
        # Seeds are 64-bit patterns; -1 and 2**64 - 1 are the same seed
        object.__setattr__(self, "seed", self.seed & MASK64)
        if self.k < 1:
            raise InvalidParameter(f"k must be at least 1, got {self.k}")
        if self.m < 8:
            raise InvalidParameter(f"m must be at least 8, got {self.m}")
        if self.k > self.m:
            raise InvalidParameter(f"k={self.k} distinct indices cannot fit in m={self.m} bits")


class BloomFilter:
    """
    Bloom Filter probabilistic data structure for membership testing.

    Space: m bits, with m = -n*ln(p)/ln(2)^2 for n expected items
    False Positive Rate: (1 - e^(-kn/m))^k
    False Negative Rate: 0 (never happens)

    Each key is hashed once with a seeded 128-bit hash; k bit positions
    come from double hashing the two output words. The key type (bytes,
    int32, int64, text or a registered adapter) fixes how keys become bytes.

    Not thread-safe for concurrent add(); guard writers with a lock.
    """

    def __init__(
        self,
        params: HashParams,
        key_type: str = "bytes",
        bits: Optional[BitArray] = None,
        native: Optional[bool] = None,
        max_probes_per_index: Optional[int] = None,
    ):
        """
        Initialize Bloom Filter from explicit parameters

        Args:
            params: Seed, bit positions per key and bit array size
            key_type: Registered key adapter name
            bits: Existing bit array of size params.m (default: all zero)
            native: Use mmh3 where the seed allows (default: settings)
            max_probes_per_index: Double hashing candidates per index (default: settings)
        """
        if bits is None:
            bits = BitArray(params.m)
        elif bits.size != params.m:
            raise InvalidParameter(f"Bit array has {bits.size} bits, expected {params.m}")

        self.params = params
        self.key_type = key_type
        self.bits = bits
        self.hasher = MixHasher(key_type, native=native, max_probes_per_index=max_probes_per_index)

    @classmethod
    def with_capacity(
        cls,
        expected_insertions: int,
        false_positive_rate: float,
        seed: int = 0,
        key_type: str = "bytes",
        **kwargs,
    ) -> "BloomFilter":
        """
        Size a new, empty filter

        Args:
            expected_insertions: Planned number of distinct items
            false_positive_rate: Desired false positive rate (0.001 = 0.1%)
            seed: Hash seed
            key_type: Registered key adapter name
        """
        m = optimal_m(expected_insertions, false_positive_rate)
        k = optimal_k(expected_insertions, m)
        logger.debug(
            f"Sized filter for n={expected_insertions}, p={false_positive_rate}: "
            f"m={m} bits, k={k}"
        )
        return cls(HashParams(seed, k, m), key_type=key_type, **kwargs)

    @classmethod
    def from_params(
        cls,
        seed: int,
        k: int,
        m: int,
        key_type: str = "bytes",
        words: Optional[Iterable[int]] = None,
        **kwargs,
    ) -> "BloomFilter":
        """
        Build a filter from explicit parameters, optionally resuming saved bits

        Args:
            seed: Hash seed
            k: Bit positions per key
            m: Bit array size
            key_type: Registered key adapter name
            words: Packed 64-bit words from to_words()
        """
        params = HashParams(seed, k, m)
        bits = BitArray.from_words(m, words) if words is not None else None
        return cls(params, key_type=key_type, bits=bits, **kwargs)

    @property
    def seed(self) -> int:
        return self.params.seed

    @property
    def k(self) -> int:
        return self.params.k

    @property
    def m(self) -> int:
        return self.params.m

    def hashes(self, item: Any) -> List[int]:
        """
        Get bit positions for an item

        Returns:
            k distinct positions in [0, m)
        """
        return self.hasher.hashes(self.k, item, self.m, self.seed)

    def locations(self, item: Any) -> Iterator[int]:
        return self.hasher.locations(self.k, item, self.m, self.seed)

    def identity_hash(self, item: Any) -> int:
        return self.hasher.identity_hash(item, self.seed)

    def add(self, item: Any) -> None:
        """
        Add an item to the Bloom filter

        Args:
            item: Key of this filter's key type
        """
        for position in self.hashes(item):
            self.bits.set(position)

    def contains(self, item: Any) -> bool:
        """
        Check if item might be in the set

        Args:
            item: Key of this filter's key type

        Returns:
            True: Item might be in set (or false positive)
            False: Item definitely NOT in set
        """
        for position in self.hashes(item):
            if not self.bits.get(position):
                return False
        return True

    def __contains__(self, item: Any) -> bool:
        """Support 'in' operator"""
        return self.contains(item)

    def clear(self) -> None:
        """Forget every item"""
        self.bits.clear()

    def fill_ratio(self) -> float:
        """Fraction of bits set"""
        return self.bits.cardinality() / self.m

    def estimated_population(self) -> float:
        """
        Estimate number of distinct items added

        Accuracy degrades as the filter saturates; infinite when full.
        """
        return population(self.bits.cardinality(), self.k, self.m)

    def current_error_rate(self) -> float:
        """
        Calculate current false positive rate

        FPR = (1 - e^(-kn/m))^k, with n the estimated population
        """
        n = self.estimated_population()
        if n == 0:
            return 0.0
        if math.isinf(n):
            return 1.0

        return (1 - math.exp(-self.k * n / self.m)) ** self.k

    def _check_compatible(self, other: "BloomFilter", operation: str) -> None:
        if self.params != other.params or self.key_type != other.key_type:
            raise InvalidParameter(
                f"Bloom filters must have same parameters for {operation}: "
                f"{self.params}/{self.key_type} vs {other.params}/{other.key_type}"
            )

    def _derive(self, bits: BitArray) -> "BloomFilter":
        return BloomFilter(
            self.params,
            key_type=self.key_type,
            bits=bits,
            native=self.hasher.native,
            max_probes_per_index=self.hasher.max_probes_per_index,
        )

    def union(self, other: "BloomFilter") -> "BloomFilter":
        """
        Union of two Bloom filters (OR operation)

        Args:
            other: Bloom filter with the same seed, k, m and key type

        Returns:
            New Bloom filter containing union
        """
        self._check_compatible(other, "union")
        return self._derive(self.bits | other.bits)

    def intersection(self, other: "BloomFilter") -> "BloomFilter":
        """
        Intersection of two Bloom filters (AND operation)

        Can report more false positives than a filter built from the
        common items directly.
        """
        self._check_compatible(other, "intersection")
        return self._derive(self.bits & other.bits)

    def copy(self) -> "BloomFilter":
        return self._derive(self.bits.copy())

    def to_words(self) -> List[int]:
        """Bit array as ceil(m / 64) unsigned 64-bit words"""
        return self.bits.to_words()

    def to_bytes(self) -> bytes:
        """Serialize bit array to bytes for storage"""
        return self.bits.to_bytes()

    @classmethod
    def from_bytes(
        cls, data: bytes, seed: int, k: int, m: int, key_type: str = "bytes", **kwargs
    ) -> "BloomFilter":
        """Deserialize from to_bytes() output plus parameters"""
        return cls(HashParams(seed, k, m), key_type=key_type, bits=BitArray.from_bytes(m, data), **kwargs)

    def snapshot(self) -> FilterSnapshot:
        return FilterSnapshot(
            seed=self.seed,
            k=self.k,
            m=self.m,
            key_type=self.key_type,
            words=self.to_words(),
        )

    @classmethod
    def from_snapshot(cls, snapshot: FilterSnapshot, **kwargs) -> "BloomFilter":
        return cls.from_params(
            snapshot.seed,
            snapshot.k,
            snapshot.m,
            key_type=snapshot.key_type,
            words=snapshot.words,
            **kwargs,
        )

    def __repr__(self) -> str:
        return (
            f"BloomFilter(seed={self.seed}, k={self.k}, m={self.m}, "
            f"key_type={self.key_type!r})"
        )
