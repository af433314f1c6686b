"""
Exceptions raised by the filter and hashing layers
"""


class BloomierError(Exception):
    """Base class for all bloomier errors"""


class InvalidParameter(BloomierError, ValueError):
    """Construction or key parameter outside its valid range"""


class HashExhausted(BloomierError, RuntimeError):
    """k distinct indices were requested from fewer than k slots"""

    def __init__(self, k: int, m: int, probes: int):
        self.k = k
        self.m = m
        self.probes = probes
        super().__init__(
            f"Cannot derive {k} distinct indices in [0, {m})"
        )
