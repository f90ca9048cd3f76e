"""Application configuration via environment variables.

Only the capability providers and the HTTP host read these settings.
The compliance engine itself is configured through its constructor.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Entailment / detection (HuggingFace Inference)
    HF_API_TOKEN: str = ""
    ENTAILMENT_ENDPOINT: str = ""
    DETECTION_ENDPOINT: str = ""

    # Vision (OpenAI-compatible chat model)
    OPENAI_API_KEY: str = ""
    VISION_MODEL: str = "gpt-4o-mini"
    VISION_ENDPOINT: str = ""

    # Optional CDN fetch-transform prefix for remote images
    CDN_TRANSFORM_ENDPOINT: str = ""

    # Capability behaviour
    CAPABILITY_TIMEOUT_SECONDS: float = 20.0
    CAPABILITY_MAX_RETRIES: int = 2
    SEMANTIC_BATCH_SIZE: int = 5
    SEMANTIC_CONFIDENCE_THRESHOLD: float = 0.75
    SEMANTIC_BATCH_TIMEOUT_SECONDS: float = 15.0

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"

    # Rate limiting (full evaluations call paid providers)
    RATE_LIMIT_MAX_FULL_EVALUATIONS: int = 30
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
