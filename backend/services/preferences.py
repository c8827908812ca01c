"""View preferences kept outside the sync sessions.

Only the forecast model selection is consumed by the core; the typed key
builder exists so callers persisting ordering/favorites never concatenate
storage keys by hand.
"""

from __future__ import annotations

from typing import Optional, Sequence

from config import settings
from interfaces.preference_store import KeyValueStore

FORECAST_MODEL_KEY = "forecastModel"
_KEY_SEPARATOR = "_"


class InMemoryKeyValueStore:
    """Dict-backed store, one per view (the equivalent of session storage)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


def build_preference_key(
    scope: str,
    view_mode: Optional[str] = None,
    country_filter: Optional[str] = None,
    query: Optional[str] = None,
) -> str:
    """Stable storage key for a (scope, view mode, filter, query) tuple.

    >>> build_preference_key("spotOrder", "grid", "all", "")
    'spotOrder_grid_all_'
    >>> build_preference_key("listOrder", None, "Poland", "hel")
    'listOrder_Poland_hel'
    """
    scope = (scope or "").strip()
    if not scope:
        raise ValueError("scope is required")
    parts = [scope]
    if view_mode is not None:
        parts.append(view_mode.strip())
    if country_filter is not None or query is not None:
        parts.append((country_filter or "all").strip())
        parts.append((query or "").strip())
    return _KEY_SEPARATOR.join(parts)


class ForecastModelSelection:
    """Allow-listed forecast model persisted in a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        allowed: Optional[Sequence[str]] = None,
        key: str = FORECAST_MODEL_KEY,
    ):
        models = [m.strip().lower() for m in (allowed or settings.FORECAST_MODELS) if m and m.strip()]
        if not models:
            raise ValueError("at least one forecast model must be allowed")
        self._store = store
        self._allowed = tuple(models)
        self._key = key

    @property
    def allowed(self) -> tuple[str, ...]:
        return self._allowed

    @property
    def default(self) -> str:
        return self._allowed[0]

    def validate(self, model: Optional[str]) -> str:
        text = (model or "").strip().lower()
        if text not in self._allowed:
            raise ValueError(
                f"Unknown forecast model {model!r}; expected one of {', '.join(self._allowed)}"
            )
        return text

    def get(self) -> str:
        stored = self._store.get(self._key)
        if stored and stored.strip().lower() in self._allowed:
            return stored.strip().lower()
        return self.default

    def set(self, model: str) -> str:
        value = self.validate(model)
        self._store.set(self._key, value)
        return value
