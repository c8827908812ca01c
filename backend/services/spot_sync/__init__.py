from services.spot_sync.collection import CollectionSyncController, filter_spots
from services.spot_sync.detail import NoActiveSessionError, SpotSyncController
from services.spot_sync.readiness import all_forecasts_empty, is_ready
from services.spot_sync.reconciler import PatchKind, PatchOp, apply_patch, reconcile
from services.spot_sync.registry import ViewRegistry
from services.spot_sync.scheduler import AsyncioScheduler, TimerGroup
from services.spot_sync.surface import LoggingRenderSurface
from services.spot_sync.timings import SyncTimings

__all__ = [
    "AsyncioScheduler",
    "CollectionSyncController",
    "LoggingRenderSurface",
    "NoActiveSessionError",
    "PatchKind",
    "PatchOp",
    "SpotSyncController",
    "SyncTimings",
    "TimerGroup",
    "ViewRegistry",
    "all_forecasts_empty",
    "apply_patch",
    "filter_spots",
    "is_ready",
    "reconcile",
]
