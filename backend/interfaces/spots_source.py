"""Spots data interface contracts.

The sync controllers only need these two coroutines, which keeps them
independent of the concrete HTTP client (and lets tests script responses).
"""

from __future__ import annotations

from typing import Optional, Protocol

from models.spot import Spot


class SpotsSource(Protocol):
    """Read-only source of spot payloads."""

    async def fetch_spot(self, spot_id: str, model: Optional[str] = None) -> Spot:
        """Fetch one spot, optionally for a specific forecast model.

        Raises ``SpotFetchError`` on failure.
        """

    async def fetch_all_spots(self) -> list[Spot]:
        """Fetch every spot for the collection view.

        Raises ``SpotFetchError`` on failure.
        """
