"""Readiness checks for fetched spot payloads."""

from __future__ import annotations

from typing import Optional, Sequence

from models.spot import Spot


def is_ready(spot: Optional[Spot]) -> bool:
    """True once upstream has computed forecasts for the spot.

    Current conditions alone are not enough: a spot can carry a live station
    reading while its forecast is still being fetched upstream.
    """
    if spot is None:
        return False
    return bool(spot.forecast) or bool(spot.forecast_hourly)


def all_forecasts_empty(spots: Sequence[Spot]) -> bool:
    """Whole-of-list not-ready check used by the collection view."""
    if not spots:
        return False
    return all(not spot.forecast for spot in spots)


def has_current_conditions(spot: Optional[Spot]) -> bool:
    return spot is not None and spot.live_conditions is not None
