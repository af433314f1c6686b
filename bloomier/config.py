"""
Configuration management for bloomier
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Library settings"""

    # Application
    APP_NAME: str = "bloomier"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Bloom Filter defaults
    BLOOM_SEED: int = 0
    BLOOM_EXPECTED_INSERTIONS: int = 1_000_000  # 1M items
    BLOOM_FALSE_POSITIVE_RATE: float = 0.001  # 0.1% false positive rate
    BLOOM_KEY_TYPE: str = "bytes"
    BLOOM_MAX_PROBES_PER_INDEX: int = 32  # double hashing candidates per index before a linear walk

    # Hash backend: mmh3 for seeds that fit in 32 bits
    NATIVE_HASH: bool = True

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_URL: str = ""

    # Filter store
    STORE_KEY_PREFIX: str = "bloomier:filter:"
    STORE_TTL_SECONDS: int = 0  # 0 = keep forever

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_redis_url(self) -> str:
        """Get Redis connection URL"""
        if self.REDIS_URL:
            return self.REDIS_URL

        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
