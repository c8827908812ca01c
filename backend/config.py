from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)


class Settings(BaseSettings):
    # Upstream spots API
    SPOTS_API_URL: str = "http://localhost:8080/api/v1/spots"
    SPOTS_REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Detail view synchronization
    SPOT_MIN_DISPLAY_SECONDS: float = 2.0  # Loading floor before first render decision
    FORECAST_POLL_INTERVAL_SECONDS: float = 5.0  # Poll while upstream computes forecasts
    FORECAST_TIMEOUT_SECONDS: float = 30.0  # Give up polling after this budget
    BACKGROUND_REFRESH_INTERVAL_SECONDS: float = 60.0  # Silent refresh once ready

    # Collection view synchronization
    COLLECTION_REFRESH_INTERVAL_SECONDS: float = 60.0
    COLLECTION_RETRY_DELAY_SECONDS: float = 5.0  # One-shot retry when every forecast is empty
    # Rendered spots missing from a refresh are kept unless this is enabled.
    COLLECTION_PRUNE_MISSING: bool = False

    # Forecast models accepted by the upstream; the first one is the default.
    FORECAST_MODELS: list[str] = ["gfs", "ifs"]

    # Service surface
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None

    @field_validator("SPOTS_API_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator("FORECAST_MODELS", mode="after")
    @classmethod
    def _normalize_models(cls, value: list[str]) -> list[str]:
        models: list[str] = []
        for item in value:
            text = str(item or "").strip().lower()
            if text and text not in models:
                models.append(text)
        if not models:
            raise ValueError("FORECAST_MODELS must name at least one model")
        return models

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"


settings = Settings()
