import json
import logging
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest
from pydantic import ValidationError

import config
from services.spot_sync.timings import SyncTimings
from utils.logger import JSONFormatter, get_logger


def test_defaults_match_sync_timing_contract():
    settings = config.Settings(_env_file=None)
    assert settings.SPOT_MIN_DISPLAY_SECONDS == 2
    assert settings.FORECAST_POLL_INTERVAL_SECONDS == 5
    assert settings.FORECAST_TIMEOUT_SECONDS == 30
    assert settings.BACKGROUND_REFRESH_INTERVAL_SECONDS == 60
    assert settings.COLLECTION_RETRY_DELAY_SECONDS == 5
    assert settings.COLLECTION_PRUNE_MISSING is False
    assert settings.FORECAST_MODELS == ["gfs", "ifs"]


def test_env_overrides_are_normalized(monkeypatch):
    monkeypatch.setenv("SPOTS_API_URL", ' "http://spots.example/api/v1/spots/" ')
    monkeypatch.setenv("FORECAST_MODELS", '["IFS", "gfs", "ifs"]')

    settings = config.Settings(_env_file=None)
    assert settings.SPOTS_API_URL == "http://spots.example/api/v1/spots"
    assert settings.FORECAST_MODELS == ["ifs", "gfs"]


def test_empty_model_list_is_rejected(monkeypatch):
    monkeypatch.setenv("FORECAST_MODELS", "[]")
    with pytest.raises(ValidationError):
        config.Settings(_env_file=None)


def test_sync_timings_follow_settings(monkeypatch):
    monkeypatch.setattr(config.settings, "FORECAST_TIMEOUT_SECONDS", 45.0)
    assert SyncTimings.from_settings().poll_timeout == 45.0


def test_context_logger_emits_structured_json(caplog):
    logger = get_logger("spot_sync.test").with_context(view_id="tab-1")

    with caplog.at_level(logging.INFO, logger="spot_sync.test"):
        logger.with_context(generation=3).info("Spot ready", spot="Hel")

    record = caplog.records[-1]
    assert record.extra_data == {"view_id": "tab-1", "generation": 3, "spot": "Hel"}
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "Spot ready"
    assert payload["data"]["generation"] == 3
    assert logger.context == {"view_id": "tab-1"}
