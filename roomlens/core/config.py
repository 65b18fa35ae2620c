"""
Configuration settings for the FastAPI application
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "RoomLens API"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Google AI Studio (vision model for spatial analysis and keyword extraction)
    google_ai_api_key: str = ""
    google_ai_model: str = "gemini-2.5-flash"
    google_ai_max_tokens: int = 800
    google_ai_temperature: float = 0.0

    # OpenAI (language model for design suggestions)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_max_tokens: int = 800
    openai_temperature: float = 0.0
    openai_timeout: float = 60.0

    # FAL (image-to-image renders)
    fal_key: str = ""
    fal_submit_url: str = "https://queue.fal.run/fal-ai/flux/dev/image-to-image"
    fal_status_url: str = "https://queue.fal.run/fal-ai/flux/dev/requests"
    fal_poll_interval: float = 1.0
    fal_max_polls: int = 60

    # Product search
    serpapi_key: str = ""
    serpapi_endpoint: str = "https://serpapi.com/search.json"
    rainforest_api_key: str = ""
    rainforest_endpoint: str = "https://api.rainforestapi.com/request"
    product_search_limit: int = 3

    # Image fetching
    image_fetch_timeout: float = 30.0

    # Overlay
    insight_max_items: int = 4

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# Global settings instance
settings = get_settings()
