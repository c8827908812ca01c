"""Render surface that writes every hook call to the log.

Used by the watch worker and as the fallback surface when no UI is attached.
"""

from __future__ import annotations

from typing import Optional, Sequence

from models.spot import Spot
from models.types import ErrorClass
from services.spot_sync.readiness import has_current_conditions
from services.spot_sync.reconciler import PatchOp
from utils.logger import get_logger


class LoggingRenderSurface:
    """Implements both the detail and collection render hooks."""

    def __init__(self, name: str = "default"):
        self._logger = get_logger("spot_sync.surface").with_context(surface=name)

    def render_ready(self, spot: Spot) -> None:
        first = spot.forecast[0] if spot.forecast else None
        self._logger.info(
            "Spot ready",
            spot=spot.name,
            country=spot.country,
            forecast_rows=len(spot.forecast),
            hourly_rows=len(spot.forecast_hourly),
            live=has_current_conditions(spot),
            first_wind=first.wind if first else None,
            first_gusts=first.gusts if first else None,
            last_updated=spot.last_updated,
        )

    def render_loading(self, reason_key: str) -> None:
        self._logger.info("Loading", reason=reason_key)

    def render_error(self, error_class: ErrorClass, detail_key: Optional[str] = None) -> None:
        self._logger.warning("Error displayed", error_class=error_class.value, detail=detail_key)

    def render_collection(self, spots: Sequence[Spot]) -> None:
        self._logger.info("Collection rendered", count=len(spots), spots=[s.name for s in spots])

    def apply_patch(self, ops: Sequence[PatchOp]) -> None:
        self._logger.info(
            "Collection patched",
            ops=[f"{op.kind.value}:{op.key}" for op in ops],
        )
