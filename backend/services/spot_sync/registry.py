"""Per-view controllers.

A view is one open page (browser tab, websocket subscriber, worker). Each view
owns at most one detail controller and one collection controller plus its own
preference store; every view shares the spots client and the scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from services.preferences import ForecastModelSelection, InMemoryKeyValueStore
from services.spot_sync.collection import CollectionSyncController
from services.spot_sync.detail import SpotSyncController
from services.spot_sync.scheduler import AsyncioScheduler, Scheduler
from services.spot_sync.timings import SyncTimings
from interfaces.spots_source import SpotsSource
from utils.logger import get_logger

logger = get_logger("spot_sync.registry")

# Returns an object implementing both RenderSurface and CollectionSurface.
SurfaceFactory = Callable[[str], Any]


@dataclass
class _View:
    surface: Any
    preferences: InMemoryKeyValueStore
    model_selection: ForecastModelSelection
    detail: Optional[SpotSyncController] = None
    collection: Optional[CollectionSyncController] = None


class ViewRegistry:
    def __init__(
        self,
        client: SpotsSource,
        surface_factory: SurfaceFactory,
        scheduler: Optional[Scheduler] = None,
        timings: Optional[SyncTimings] = None,
        allowed_models: Optional[Sequence[str]] = None,
    ):
        self._client = client
        self._surface_factory = surface_factory
        self._scheduler = scheduler or AsyncioScheduler()
        self._timings = timings or SyncTimings.from_settings()
        self._allowed_models = allowed_models
        self._views: dict[str, _View] = {}

    def _view(self, view_id: str) -> _View:
        view = self._views.get(view_id)
        if view is None:
            store = InMemoryKeyValueStore()
            view = _View(
                surface=self._surface_factory(view_id),
                preferences=store,
                model_selection=ForecastModelSelection(store, allowed=self._allowed_models),
            )
            self._views[view_id] = view
            logger.debug("View registered", view_id=view_id)
        return view

    def view_ids(self) -> list[str]:
        return list(self._views)

    def model_selection(self, view_id: str) -> ForecastModelSelection:
        return self._view(view_id).model_selection

    def detail(self, view_id: str) -> SpotSyncController:
        view = self._view(view_id)
        if view.detail is None:
            view.detail = SpotSyncController(
                self._client,
                view.surface,
                scheduler=self._scheduler,
                timings=self._timings,
                model_selection=view.model_selection,
                view_id=view_id,
            )
        return view.detail

    def collection(self, view_id: str) -> CollectionSyncController:
        view = self._view(view_id)
        if view.collection is None:
            view.collection = CollectionSyncController(
                self._client,
                view.surface,
                scheduler=self._scheduler,
                timings=self._timings,
                view_id=view_id,
            )
        return view.collection

    def peek_detail(self, view_id: str) -> Optional[SpotSyncController]:
        view = self._views.get(view_id)
        return view.detail if view else None

    def peek_collection(self, view_id: str) -> Optional[CollectionSyncController]:
        view = self._views.get(view_id)
        return view.collection if view else None

    def stop_view(self, view_id: str) -> bool:
        """Stop and forget a view. Returns False if it was never registered."""
        view = self._views.pop(view_id, None)
        if view is None:
            return False
        if view.detail is not None:
            view.detail.stop()
        if view.collection is not None:
            view.collection.stop()
        logger.info("View stopped", view_id=view_id)
        return True

    def stop_all(self) -> None:
        for view_id in list(self._views):
            self.stop_view(view_id)

    def status(self) -> dict[str, Any]:
        return {
            "views": len(self._views),
            "detail_sessions": sum(1 for v in self._views.values() if v.detail is not None),
            "collection_sessions": sum(
                1 for v in self._views.values() if v.collection is not None
            ),
        }
