import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "AI Video Generator"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Upstream inference endpoint
    INFERENCE_URL: str = "https://oi-server.onrender.com/chat/completions"
    INFERENCE_MODEL: str = "replicate/google/veo-3"
    INFERENCE_CUSTOMER_ID: str = ""
    INFERENCE_API_KEY: str = ""
    GENERATION_TIMEOUT: float = 900.0  # seconds (15 minutes)
    MAX_TOKENS: int = 4000
    TEMPERATURE: float = 0.7

    # Request limits
    MAX_PROMPT_LENGTH: int = 1000

    # Placeholder media returned while the upstream yields no playable asset
    SAMPLE_VIDEO_URL: str = "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"
    SAMPLE_THUMBNAIL_URL: str = "https://img.youtube.com/vi/aqz-KE-bpKQ/maxresdefault.jpg"

    # Client-side library
    LIBRARY_CAPACITY: int = 50
    LIBRARY_PATH: Path = Field(default=Path("local_storage/library.json"))

    # Where the UI finds the HTTP API
    API_BASE_URL: str = "http://localhost:8000"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class LocalSettings(Settings):
    ENV: str = "dev"


class ProductionSettings(Settings):
    ENV: str = "production"
    INFERENCE_CUSTOMER_ID: str = Field(..., validation_alias="INFERENCE_CUSTOMER_ID")
    INFERENCE_API_KEY: str = Field(..., validation_alias="INFERENCE_API_KEY")


# Factory to choose the right config
def get_settings() -> Settings:
    env = os.getenv("ENV", "local")
    if env == "production":
        return ProductionSettings()  # type: ignore
    return LocalSettings()


settings = get_settings()
