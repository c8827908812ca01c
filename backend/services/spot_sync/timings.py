from __future__ import annotations

from dataclasses import dataclass

from config import settings


@dataclass(frozen=True)
class SyncTimings:
    """Fixed delays (seconds) driving both controllers."""

    min_display: float = 2.0
    poll_interval: float = 5.0
    poll_timeout: float = 30.0
    refresh_interval: float = 60.0
    collection_refresh_interval: float = 60.0
    collection_retry_delay: float = 5.0

    @classmethod
    def from_settings(cls) -> "SyncTimings":
        return cls(
            min_display=settings.SPOT_MIN_DISPLAY_SECONDS,
            poll_interval=settings.FORECAST_POLL_INTERVAL_SECONDS,
            poll_timeout=settings.FORECAST_TIMEOUT_SECONDS,
            refresh_interval=settings.BACKGROUND_REFRESH_INTERVAL_SECONDS,
            collection_refresh_interval=settings.COLLECTION_REFRESH_INTERVAL_SECONDS,
            collection_retry_delay=settings.COLLECTION_RETRY_DELAY_SECONDS,
        )
