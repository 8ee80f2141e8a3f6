from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Google Maps (Static Maps satellite imagery + Geocoding)
    GOOGLE_MAPS_KEY: Optional[str] = None

    # Vision model (OpenAI-compatible chat completions endpoint)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    VISION_MODEL: str = "gpt-4o"

    # Rentcast property records (optional - estimation degrades without it)
    RENTCAST_API_KEY: Optional[str] = None
    RENTCAST_API_URL: str = "https://api.rentcast.io/v1/properties"

    # Cache
    CACHE_DATABASE_URL: str = "sqlite:///./roof_cache.db"
    CACHE_TTL_HOURS: float = 24.0

    # Imagery sampling
    ZOOM_LEVELS: List[int] = [21, 20, 19]
    IMAGE_SIZE: str = "640x640"
    IMAGE_SCALE: int = 2

    # Timeouts (seconds)
    IMAGE_FETCH_TIMEOUT: float = 20.0
    VISION_TIMEOUT: float = 30.0
    GEOCODE_TIMEOUT: float = 10.0
    REQUEST_TIMEOUT: float = 45.0
    RETRY_BACKOFF_SECONDS: float = 0.5

    SHORT_CIRCUIT_ON_HIGH_CONFIDENCE: bool = True

    # App
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
