"""
Persisted filter state
"""
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator

from bloomier.core.bit_array import MASK64, word_count


class FilterSnapshot(BaseModel):
    """Parameters plus packed bit words of one Bloom filter"""

    seed: int = Field(..., description="64-bit hash seed")
    k: int = Field(..., ge=1, description="Bit positions per key")
    m: int = Field(..., ge=8, description="Bit array size")
    key_type: str = "bytes"
    words: List[int] = Field(default_factory=list)

    @field_validator("words")
    def normalize_words(cls, v):
        """Accept signed 64-bit words from other producers"""
        normalized = []
        for word in v:
            if not -(1 << 63) <= word <= MASK64:
                raise ValueError(f"Word {word} does not fit in 64 bits")
            normalized.append(word & MASK64)
        return normalized

    @model_validator(mode="after")
    def check_layout(self):
        if self.k > self.m:
            raise ValueError(f"k={self.k} exceeds m={self.m}")
        if len(self.words) > word_count(self.m):
            raise ValueError(
                f"{len(self.words)} words for m={self.m} "
                f"(at most {word_count(self.m)} expected)"
            )
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "seed": 666,
                "k": 3,
                "m": 128,
                "key_type": "text",
                "words": [1152921504606846976, 8],
            }
        }
