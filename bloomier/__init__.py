"""
bloomier: seeded Bloom filters over a 128-bit mixing hash
"""
import logging

from bloomier.config import settings
from bloomier.core.errors import BloomierError, HashExhausted, InvalidParameter
from bloomier.core.hashing import HashState, MixHasher, register_adapter
from bloomier.core.sketches.bloom_filter import (
    BloomFilter,
    HashParams,
    optimal_k,
    optimal_m,
)
from bloomier.models.snapshot import FilterSnapshot

__version__ = "1.0.0"


def configure_logging() -> None:
    """Configure root logging from settings"""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


__all__ = [
    "BloomFilter",
    "BloomierError",
    "FilterSnapshot",
    "HashExhausted",
    "HashParams",
    "HashState",
    "InvalidParameter",
    "MixHasher",
    "configure_logging",
    "optimal_k",
    "optimal_m",
    "register_adapter",
    "settings",
]
