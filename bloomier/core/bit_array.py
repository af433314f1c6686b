"""
Packed bit array with a flat 64-bit word persistence layout
"""
import math
import operator
from typing import Iterable, List

from bloomier.core.errors import InvalidParameter

MASK64 = 0xFFFFFFFFFFFFFFFF
WORD_BITS = 64
WORD_BYTES = 8


def word_count(size: int) -> int:
    """Number of 64-bit words holding size bits"""
    return math.ceil(size / WORD_BITS)


class BitArray:
    """
    Fixed-size array of bits packed into a bytearray.

    Bit i lives in byte i // 8 at position i % 8, and the buffer is
    padded to whole 64-bit words. Read as little-endian words this is
    the persisted layout: bit i at word i // 64, position i % 64.
    Padding bits beyond size are always zero.

    Not synchronized: concurrent writers need an external lock.
    """

    def __init__(self, size: int):
        if size < 1:
            raise InvalidParameter(f"Bit array size must be positive, got {size}")
        self.size = size
        self._bytes = bytearray(word_count(size) * WORD_BYTES)

    @classmethod
    def from_words(cls, size: int, words: Iterable[int]) -> "BitArray":
        """
        Rebuild from persisted 64-bit words

        Negative words are read as their two's-complement pattern,
        missing trailing words as zero. Bits beyond size are dropped.

        Args:
            size: Number of bits
            words: Packed words, at most ceil(size / 64) of them

        Raises:
            InvalidParameter: Too many words, or a word outside [-2^63, 2^64)
        """
        bits = cls(size)
        words = list(words)
        if len(words) > word_count(size):
            raise InvalidParameter(
                f"{len(words)} words given for {size} bits "
                f"(at most {word_count(size)} expected)"
            )
        for i, word in enumerate(words):
            if not -(1 << 63) <= word <= MASK64:
                raise InvalidParameter(f"Word {i} is not a 64-bit value: {word}")
            offset = i * WORD_BYTES
            bits._bytes[offset:offset + WORD_BYTES] = (word & MASK64).to_bytes(WORD_BYTES, "little")
        bits._clear_padding()
        return bits

    @classmethod
    def from_bytes(cls, size: int, data: bytes) -> "BitArray":
        """Rebuild from the to_bytes() form (little-endian words)"""
        if len(data) % WORD_BYTES:
            raise InvalidParameter(f"Packed data length {len(data)} is not a multiple of 8")
        words = [
            int.from_bytes(data[i:i + WORD_BYTES], "little")
            for i in range(0, len(data), WORD_BYTES)
        ]
        return cls.from_words(size, words)

    def _check(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"Bit index {index} out of range [0, {self.size})")

    def _clear_padding(self) -> None:
        extra = len(self._bytes) * 8 - self.size
        if not extra:
            return
        last = self.size // 8
        if self.size % 8:
            self._bytes[last] &= (1 << (self.size % 8)) - 1
            last += 1
        self._bytes[last:] = bytes(len(self._bytes) - last)

    def get(self, index: int) -> bool:
        self._check(index)
        return bool(self._bytes[index >> 3] & (1 << (index & 7)))

    def set(self, index: int) -> None:
        self._check(index)
        self._bytes[index >> 3] |= 1 << (index & 7)

    def __getitem__(self, index: int) -> bool:
        return self.get(index)

    def __len__(self) -> int:
        return self.size

    def clear(self) -> None:
        """Reset every bit to 0"""
        self._bytes[:] = bytes(len(self._bytes))

    def fill(self) -> None:
        """Set every bit in [0, size) to 1"""
        self._bytes[:] = b"\xff" * len(self._bytes)
        self._clear_padding()

    def cardinality(self) -> int:
        """Number of set bits"""
        return bin(int.from_bytes(self._bytes, "little")).count("1")

    def copy(self) -> "BitArray":
        clone = BitArray(self.size)
        clone._bytes[:] = self._bytes
        return clone

    def _combine(self, other: "BitArray", op) -> "BitArray":
        if self.size != other.size:
            raise InvalidParameter(
                f"Bit arrays differ in size ({self.size} vs {other.size})"
            )
        value = op(int.from_bytes(self._bytes, "little"), int.from_bytes(other._bytes, "little"))
        result = BitArray(self.size)
        result._bytes[:] = value.to_bytes(len(self._bytes), "little")
        return result

    def __or__(self, other: "BitArray") -> "BitArray":
        return self._combine(other, operator.or_)

    def __and__(self, other: "BitArray") -> "BitArray":
        return self._combine(other, operator.and_)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitArray):
            return NotImplemented
        return self.size == other.size and self._bytes == other._bytes

    def to_words(self) -> List[int]:
        """Persisted form: ceil(size / 64) unsigned 64-bit words"""
        return [
            int.from_bytes(self._bytes[i:i + WORD_BYTES], "little")
            for i in range(0, len(self._bytes), WORD_BYTES)
        ]

    def to_bytes(self) -> bytes:
        """Persisted words, each packed little-endian"""
        return bytes(self._bytes)

    def __repr__(self) -> str:
        return f"BitArray(size={self.size}, set={self.cardinality()})"
