"""Render surface contracts.

Whatever draws the views (a browser over WebSocket, a log, a test recorder)
implements these hooks. The controllers never read a return value from them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from models.spot import Spot
from models.types import ErrorClass

if TYPE_CHECKING:
    from services.spot_sync.reconciler import PatchOp


class RenderSurface(Protocol):
    """Display hooks for the single spot detail view."""

    def render_ready(self, spot: Spot) -> None:
        """Show forecast data for a spot."""

    def render_loading(self, reason_key: str) -> None:
        """Show a loading indicator with a translatable reason key."""

    def render_error(self, error_class: ErrorClass, detail_key: Optional[str] = None) -> None:
        """Show an error with an optional translatable detail key."""


class CollectionSurface(Protocol):
    """Display hooks for the multi spot grid view."""

    def render_loading(self, reason_key: str) -> None:
        ...

    def render_error(self, error_class: ErrorClass, detail_key: Optional[str] = None) -> None:
        ...

    def render_collection(self, spots: Sequence[Spot]) -> None:
        """Replace the whole grid (initial display or filter change)."""

    def apply_patch(self, ops: Sequence["PatchOp"]) -> None:
        """Update individual cards in place."""
