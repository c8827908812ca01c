import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest

from services.preferences import (
    FORECAST_MODEL_KEY,
    ForecastModelSelection,
    InMemoryKeyValueStore,
    build_preference_key,
)


def test_preference_keys():
    assert build_preference_key("spotOrder", "grid", "all", "") == "spotOrder_grid_all_"
    assert build_preference_key("spotOrder", "list", None, "Hel ") == "spotOrder_list_all_Hel"
    assert build_preference_key("favorites") == "favorites"
    with pytest.raises(ValueError):
        build_preference_key(" ")


def test_model_selection_defaults_to_first_allowed():
    selection = ForecastModelSelection(InMemoryKeyValueStore(), allowed=["gfs", "ifs"])
    assert selection.get() == "gfs"
    assert selection.default == "gfs"


def test_model_selection_persists_normalized_value():
    store = InMemoryKeyValueStore()
    selection = ForecastModelSelection(store, allowed=["gfs", "ifs"])

    assert selection.set(" IFS ") == "ifs"
    assert store.get(FORECAST_MODEL_KEY) == "ifs"
    assert selection.get() == "ifs"


def test_model_selection_rejects_unknown_model():
    store = InMemoryKeyValueStore()
    selection = ForecastModelSelection(store, allowed=["gfs", "ifs"])

    with pytest.raises(ValueError):
        selection.set("ecmwf")
    assert FORECAST_MODEL_KEY not in store


def test_stale_stored_model_falls_back_to_default():
    store = InMemoryKeyValueStore({FORECAST_MODEL_KEY: "icon"})
    assert ForecastModelSelection(store, allowed=["gfs", "ifs"]).get() == "gfs"


def test_model_selection_requires_allowed_models():
    with pytest.raises(ValueError):
        ForecastModelSelection(InMemoryKeyValueStore(), allowed=[" "])


def test_store_delete():
    store = InMemoryKeyValueStore({"a": "1"})
    store.delete("a")
    store.delete("missing")
    assert len(store) == 0
