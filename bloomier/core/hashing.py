"""
Seeded 128-bit mixing hash (MurmurHash3 x64-128) and double hashing
Turns any supported key into k distinct bit positions from one hash computation
"""
import logging
import operator
import struct
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

import mmh3

from bloomier.config import settings
from bloomier.core.errors import HashExhausted, InvalidParameter

logger = logging.getLogger(__name__)

MASK64 = 0xFFFFFFFFFFFFFFFF
MASK32 = 0xFFFFFFFF
SIGN_MASK64 = 0x7FFFFFFFFFFFFFFF

C1 = 0x87C37B91114253D5
C2 = 0x4CF5AD432745937F
CHUNK_SIZE = 16

# Two little-endian 64-bit words per 16-byte chunk
_BLOCK = struct.Struct("<QQ")

ByteAdapter = Callable[[Any], bytes]


def rotl64(x: int, r: int) -> int:
    """Rotate a 64-bit word left by r bits"""
    return ((x << r) | (x >> (64 - r))) & MASK64


def mix_k1(k1: int) -> int:
    k1 = (k1 * C1) & MASK64
    k1 = rotl64(k1, 31)
    return (k1 * C2) & MASK64


def mix_k2(k2: int) -> int:
    k2 = (k2 * C2) & MASK64
    k2 = rotl64(k2, 33)
    return (k2 * C1) & MASK64


def fmix64(k: int) -> int:
    """Finalization mix: forces all bits of a hash block to avalanche"""
    k ^= k >> 33
    k = (k * 0xFF51AFD7ED558CCD) & MASK64
    k ^= k >> 33
    k = (k * 0xC4CEB9FE1A85EC53) & MASK64
    k ^= k >> 33
    return k


class HashState:
    """
    Scratch state of a single hash computation.

    Holds the two 64-bit accumulators and the number of bytes consumed.
    A fresh state is created for every establish() call, so one MixHasher
    can be shared between threads; a state itself must not be.
    """

    __slots__ = ("h1", "h2", "length")

    def __init__(self, h1: int = 0, h2: int = 0, length: int = 0):
        self.h1 = h1
        self.h2 = h2
        self.length = length

    @classmethod
    def seeded(cls, seed: int) -> "HashState":
        """Start a computation with both accumulators set to the seed"""
        seed &= MASK64
        return cls(seed, seed, 0)

    def process(self, data: bytes) -> "HashState":
        """
        Consume a complete key: full 16-byte chunks, then the tail

        Args:
            data: Key bytes

        Returns:
            self, for chaining into finalize()
        """
        full = len(data) - len(data) % CHUNK_SIZE
        for offset in range(0, full, CHUNK_SIZE):
            k1, k2 = _BLOCK.unpack_from(data, offset)
            self._bmix64(k1, k2)

        if full < len(data):
            self._mix_tail(data[full:])

        self.length += len(data)
        return self

    def _bmix64(self, k1: int, k2: int) -> None:
        h1 = self.h1 ^ mix_k1(k1)
        h1 = rotl64(h1, 27)
        h1 = (h1 + self.h2) & MASK64
        h1 = (h1 * 5 + 0x52DCE729) & MASK64
        self.h1 = h1

        h2 = self.h2 ^ mix_k2(k2)
        h2 = rotl64(h2, 31)
        h2 = (h2 + h1) & MASK64
        self.h2 = (h2 * 5 + 0x38495AB5) & MASK64

    def _mix_tail(self, tail: bytes) -> None:
        # Byte i lands at bit 8*i of k1 (first 8 bytes) or k2 (the rest)
        k1 = int.from_bytes(tail[:8], "little")
        k2 = int.from_bytes(tail[8:], "little")
        self.h1 ^= mix_k1(k1)
        self.h2 ^= mix_k2(k2)

    def finalize(self) -> "HashState":
        h1 = self.h1 ^ self.length
        h2 = self.h2 ^ self.length

        h1 = (h1 + h2) & MASK64
        h2 = (h2 + h1) & MASK64

        h1 = fmix64(h1)
        h2 = fmix64(h2)

        h1 = (h1 + h2) & MASK64
        h2 = (h2 + h1) & MASK64

        self.h1 = h1
        self.h2 = h2
        return self

    def digest(self) -> Tuple[int, int]:
        """The two 64-bit output words"""
        return self.h1, self.h2

    def __repr__(self) -> str:
        return f"HashState(h1={self.h1:#018x}, h2={self.h2:#018x}, length={self.length})"


# =====================
# Key adapters
# =====================

def bytes_adapter(key: Any) -> bytes:
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise TypeError(f"Expected a bytes-like key, got {type(key).__name__}")
    return bytes(key)


def int32_adapter(key: Any) -> bytes:
    """
    32-bit integer as 4 little-endian bytes

    The tail word then equals the integer's 32-bit two's-complement
    pattern. Accepts signed and unsigned 32-bit values.
    """
    value = operator.index(key)
    if not -(1 << 31) <= value <= MASK32:
        raise InvalidParameter(f"Integer key {value} does not fit in 32 bits")
    return (value & MASK32).to_bytes(4, "little")


def int64_adapter(key: Any) -> bytes:
    """64-bit integer as 8 little-endian bytes (signed or unsigned)"""
    value = operator.index(key)
    if not -(1 << 63) <= value <= MASK64:
        raise InvalidParameter(f"Integer key {value} does not fit in 64 bits")
    return (value & MASK64).to_bytes(8, "little")


def text_adapter(key: Any) -> bytes:
    if not isinstance(key, str):
        raise TypeError(f"Expected a str key, got {type(key).__name__}")
    return key.encode("utf-8")


KEY_ADAPTERS: Dict[str, ByteAdapter] = {
    "bytes": bytes_adapter,
    "int32": int32_adapter,
    "int64": int64_adapter,
    "text": text_adapter,
}


def register_adapter(name: str, adapter: ByteAdapter, replace: bool = False) -> None:
    """
    Register a byte adapter for a new key shape

    Args:
        name: Key type name used by filters and snapshots
        adapter: Pure function from key to bytes
        replace: Allow overwriting an existing registration
    """
    if name in KEY_ADAPTERS and not replace:
        raise InvalidParameter(f"Key type '{name}' is already registered")
    KEY_ADAPTERS[name] = adapter


def get_adapter(name: str) -> ByteAdapter:
    try:
        return KEY_ADAPTERS[name]
    except KeyError:
        raise InvalidParameter(
            f"Unknown key type '{name}' (known: {', '.join(sorted(KEY_ADAPTERS))})"
        ) from None


# =====================
# Hasher
# =====================

class ProbeResult(NamedTuple):
    """Distinct indices for one key plus the number of duplicate candidates skipped"""

    indices: List[int]
    misses: int


class MixHasher:
    """
    Seeded 128-bit hash engine bound to one key type.

    The adapter is stateless and all scratch state lives in a per-call
    HashState, so instances are freely shareable.

    When native hashing is enabled and the seed fits in 32 unsigned bits,
    digests come from mmh3.hash64, which runs the same mixer in C.
    Wider seeds always take the pure-Python path.
    """

    def __init__(
        self,
        key_type: str = "bytes",
        native: Optional[bool] = None,
        max_probes_per_index: Optional[int] = None,
    ):
        """
        Initialize hasher

        Args:
            key_type: Registered adapter name (bytes, int32, int64, text, ...)
            native: Use mmh3 where possible (default: settings.NATIVE_HASH)
            max_probes_per_index: Double hashing candidates per index before the
                search walks linearly (default: settings.BLOOM_MAX_PROBES_PER_INDEX)
        """
        self.key_type = key_type
        self.adapter = get_adapter(key_type)
        self.native = settings.NATIVE_HASH if native is None else native
        if max_probes_per_index is None:
            max_probes_per_index = settings.BLOOM_MAX_PROBES_PER_INDEX
        if max_probes_per_index < 1:
            raise InvalidParameter("max_probes_per_index must be at least 1")
        self.max_probes_per_index = max_probes_per_index

    def establish(self, key: Any, seed: int) -> HashState:
        """
        Hash a key

        Args:
            key: Key of this hasher's key type
            seed: 64-bit seed (any int, taken mod 2^64)

        Returns:
            Finalized HashState
        """
        data = self.adapter(key)
        if self.native and 0 <= seed <= MASK32:
            h1, h2 = mmh3.hash64(data, seed=seed, signed=False)
            return HashState(h1, h2, len(data))
        return HashState.seeded(seed).process(data).finalize()

    def digest(self, key: Any, seed: int) -> Tuple[int, int]:
        return self.establish(key, seed).digest()

    def probe(self, k: int, key: Any, m: int, seed: int) -> ProbeResult:
        """
        Derive k distinct indices in [0, m) by double hashing

        Candidate i is (h1 + i*h2) with the sign bit masked off, mod m.
        Candidates already chosen for this key are skipped. When h2 shares
        factors with m the candidates repeat in a short cycle, so after
        k * max_probes_per_index candidates the search walks forward from
        the last candidate one slot at a time, which always completes.

        Raises:
            HashExhausted: k > m, so k distinct indices cannot exist
        """
        if k > m:
            logger.warning(f"Double hashing exhausted: k={k} exceeds m={m}")
            raise HashExhausted(k, m, 0)

        state = self.establish(key, seed)
        combined, step = state.h1, state.h2
        switch = k * self.max_probes_per_index

        indices: List[int] = []
        index = 0
        probes = 0
        while len(indices) < k:
            if probes < switch:
                index = (combined & SIGN_MASK64) % m
                combined = (combined + step) & MASK64
            else:
                index = (index + 1) % m
            if index not in indices:
                indices.append(index)
            probes += 1

        return ProbeResult(indices, probes - k)

    def hashes(self, k: int, key: Any, m: int, seed: int) -> List[int]:
        return self.probe(k, key, m, seed).indices

    def locations(self, k: int, key: Any, m: int, seed: int) -> Iterator[int]:
        return iter(self.hashes(k, key, m, seed))

    def identity_hash(self, key: Any, seed: int, signed: bool = True) -> int:
        """
        32-bit identity of a key, folded from the first hash word

        Args:
            key: Key to identify
            seed: Hash seed
            signed: Return a signed 32-bit value (like mmh3.hash)
        """
        h1 = self.establish(key, seed).h1
        value = (h1 ^ ((h1 >> 32) & 0x7FFFFFFF)) & MASK32
        if signed and value & 0x80000000:
            value -= 1 << 32
        return value

    def __repr__(self) -> str:
        return f"MixHasher(key_type={self.key_type!r}, native={self.native})"
