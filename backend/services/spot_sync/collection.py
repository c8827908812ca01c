"""Live synchronization for the multi spot grid view.

The collection session loads every spot, shows the filtered subset, and then
refreshes on a fixed interval. Refreshes are applied as in-place patches
(see ``reconciler``) so the grid is never torn down under the user.

If every spot in the filtered list still has an empty forecast, upstream is
warming up: the view keeps showing its loading state and a single retry of
the whole load is scheduled.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection as CollectionABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from config import settings
from interfaces.render_surface import CollectionSurface
from interfaces.spots_source import SpotsSource
from models.spot import Spot
from models.types import READY_STATES, ErrorClass, SessionState
from services.spot_sync.readiness import all_forecasts_empty
from services.spot_sync.reconciler import apply_patch, reconcile
from services.spot_sync.scheduler import AsyncioScheduler, Cancellable, Scheduler, TimerGroup
from services.spot_sync.timings import SyncTimings
from services.spots_client import SpotFetchError
from utils.logger import get_logger
from utils.utcnow import utc_isoformat, utcnow

logger = get_logger("spot_sync.collection")

ALL_COUNTRIES = "all"
LOADING_TEXT = "loadingText"
ERROR_LOADING_SPOTS = "errorLoadingSpots"


def filter_spots(
    spots: Sequence[Spot],
    country: str = ALL_COUNTRIES,
    query: str = "",
    names: Optional[CollectionABC[str]] = None,
) -> list[Spot]:
    """Country filter, then case-insensitive search on name or country.

    ``names`` restricts the result to a subset (e.g. the user's favorites).
    Order of ``spots`` is preserved.
    """
    filtered = list(spots)
    if country and country != ALL_COUNTRIES:
        filtered = [spot for spot in filtered if spot.country == country]

    needle = (query or "").strip().lower()
    if needle:
        filtered = [
            spot
            for spot in filtered
            if needle in spot.name.lower() or (spot.country and needle in spot.country.lower())
        ]

    if names is not None:
        filtered = [spot for spot in filtered if spot.name in names]
    return filtered


@dataclass
class CollectionSession:
    generation: int
    timers: TimerGroup
    country: str = ALL_COUNTRIES
    query: str = ""
    names: Optional[frozenset[str]] = None
    state: SessionState = SessionState.IDLE
    error: Optional[ErrorClass] = None
    spots: list[Spot] = field(default_factory=list)  # last full fetch, unfiltered
    rendered: dict[str, Spot] = field(default_factory=dict)  # on screen, by spot name
    fetch_in_flight: bool = False
    fetch_count: int = 0
    retry_timer: Optional[Cancellable] = None
    refresh_timer: Optional[Cancellable] = None
    started_at: datetime = field(default_factory=utcnow)
    last_render_at: Optional[datetime] = None


FetchDone = Callable[[CollectionSession, Optional[list[Spot]], Optional[SpotFetchError]], None]


class CollectionSyncController:
    """Owns the grid view's session."""

    def __init__(
        self,
        client: SpotsSource,
        surface: CollectionSurface,
        scheduler: Optional[Scheduler] = None,
        timings: Optional[SyncTimings] = None,
        prune_missing: Optional[bool] = None,
        view_id: str = "default",
    ):
        self._client = client
        self._surface = surface
        self._scheduler = scheduler or AsyncioScheduler()
        self._timings = timings or SyncTimings.from_settings()
        self._prune_missing = (
            settings.COLLECTION_PRUNE_MISSING if prune_missing is None else prune_missing
        )
        self.view_id = view_id
        self._generation = 0
        self._session: Optional[CollectionSession] = None
        self._logger = logger.with_context(view_id=view_id)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def session(self) -> Optional[CollectionSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    @property
    def rendered(self) -> dict[str, Spot]:
        return dict(self._session.rendered) if self._session else {}

    def _current(self, generation: int) -> Optional[CollectionSession]:
        session = self._session
        if session is None or generation != self._generation or session.generation != generation:
            return None
        return session

    def _session_logger(self, session: CollectionSession):
        return self._logger.with_context(
            generation=session.generation,
            country=session.country,
            query=session.query,
        )

    # ------------------------------------------------------------------
    # External operations
    # ------------------------------------------------------------------

    def start(
        self,
        country: str = ALL_COUNTRIES,
        query: str = "",
        names: Optional[CollectionABC[str]] = None,
    ) -> CollectionSession:
        self._terminate()
        self._generation += 1
        session = CollectionSession(
            generation=self._generation,
            timers=TimerGroup(self._scheduler),
            country=country or ALL_COUNTRIES,
            query=query or "",
            names=frozenset(names) if names is not None else None,
        )
        self._session = session
        self._session_logger(session).info("Collection session started")
        self._load(session)
        return session

    def set_filter(
        self,
        country: str = ALL_COUNTRIES,
        query: str = "",
        names: Optional[CollectionABC[str]] = None,
    ) -> CollectionSession:
        """Re-display from the cached collection; falls back to ``start``."""
        session = self._session
        if session is None or session.state not in READY_STATES:
            return self.start(country, query, names)

        session.country = country or ALL_COUNTRIES
        session.query = query or ""
        session.names = frozenset(names) if names is not None else None
        self._session_logger(session).info("Collection filter changed")
        self._display(session)
        return session

    def stop(self) -> None:
        self._terminate()
        self._generation += 1

    def status(self) -> dict[str, Any]:
        session = self._session
        if session is None:
            return {
                "view_id": self.view_id,
                "state": SessionState.IDLE.value,
                "generation": self._generation,
                "rendered_count": 0,
            }
        return {
            "view_id": self.view_id,
            "state": session.state.value,
            "generation": self._generation,
            "country": session.country,
            "query": session.query,
            "error": session.error.value if session.error else None,
            "spots_count": len(session.spots),
            "rendered_count": len(session.rendered),
            "fetch_in_flight": session.fetch_in_flight,
            "fetch_count": session.fetch_count,
            "active_timers": session.timers.active_count,
            "started_at": utc_isoformat(session.started_at),
            "last_render_at": (
                utc_isoformat(session.last_render_at) if session.last_render_at else None
            ),
        }

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _spawn_fetch(self, session: CollectionSession, on_done: FetchDone) -> None:
        session.fetch_in_flight = True
        session.fetch_count += 1
        self._scheduler.spawn(self._run_fetch(session, session.generation, on_done))

    async def _run_fetch(
        self, session: CollectionSession, generation: int, on_done: FetchDone
    ) -> None:
        spots: Optional[list[Spot]] = None
        error: Optional[SpotFetchError] = None
        try:
            spots = await self._client.fetch_all_spots()
        except asyncio.CancelledError:
            raise
        except SpotFetchError as exc:
            error = exc
        except Exception as exc:
            self._session_logger(session).exception("Unexpected error fetching spots")
            error = SpotFetchError(ErrorClass.TRANSIENT, str(exc))

        if self._current(generation) is None:
            self._session_logger(session).debug(
                "Discarding stale collection fetch", current_generation=self._generation
            )
            return

        session.fetch_in_flight = False
        try:
            on_done(session, spots, error)
        except Exception:
            self._session_logger(session).exception("Collection fetch handler failed")

    # ------------------------------------------------------------------
    # Load / display
    # ------------------------------------------------------------------

    def _load(self, session: CollectionSession) -> None:
        session.state = SessionState.INITIAL_LOADING
        self._surface.render_loading(LOADING_TEXT)
        self._spawn_fetch(session, self._on_load_result)

    def _on_load_result(
        self,
        session: CollectionSession,
        spots: Optional[list[Spot]],
        error: Optional[SpotFetchError],
    ) -> None:
        if session.state != SessionState.INITIAL_LOADING:
            return
        if error is not None:
            self._fail(session, error.error_class, ERROR_LOADING_SPOTS)
            return
        session.spots = list(spots or [])
        self._display(session)

    def _display(self, session: CollectionSession) -> None:
        filtered = filter_spots(session.spots, session.country, session.query, session.names)

        if filtered and all_forecasts_empty(filtered):
            session.state = SessionState.POLLING
            session.rendered = {}
            self._session_logger(session).info(
                "All forecasts empty; retrying",
                delay_seconds=self._timings.collection_retry_delay,
            )
            self._surface.render_loading(LOADING_TEXT)
            generation = session.generation
            session.retry_timer = session.timers.call_later(
                self._timings.collection_retry_delay,
                lambda: self._on_retry(generation),
            )
            return

        session.state = SessionState.READY
        session.error = None
        session.rendered = {}
        for spot in filtered:
            session.rendered.setdefault(spot.key, spot)
        session.last_render_at = utcnow()
        self._surface.render_collection(filtered)

        if session.refresh_timer is None or session.refresh_timer.cancelled:
            generation = session.generation
            session.refresh_timer = session.timers.call_every(
                self._timings.collection_refresh_interval,
                lambda: self._on_refresh_tick(generation),
            )

    def _on_retry(self, generation: int) -> None:
        session = self._current(generation)
        if session is None or session.state != SessionState.POLLING:
            return
        session.retry_timer = None
        session.state = SessionState.INITIAL_LOADING
        self._spawn_fetch(session, self._on_load_result)

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    def _on_refresh_tick(self, generation: int) -> None:
        session = self._current(generation)
        if session is None or session.state not in READY_STATES:
            return
        if session.fetch_in_flight:
            self._session_logger(session).debug("Skipping collection refresh; previous fetch pending")
            return
        session.state = SessionState.BACKGROUND_REFRESHING
        self._spawn_fetch(session, self._on_refresh_result)

    def _on_refresh_result(
        self,
        session: CollectionSession,
        spots: Optional[list[Spot]],
        error: Optional[SpotFetchError],
    ) -> None:
        if session.state != SessionState.BACKGROUND_REFRESHING:
            return
        session.state = SessionState.READY
        log = self._session_logger(session)

        if error is not None:
            if error.is_not_found:
                log.warning("Spots endpoint not found during background refresh")
                self._fail(session, ErrorClass.NOT_FOUND, ERROR_LOADING_SPOTS)
            else:
                log.warning("Collection background refresh failed", error=str(error))
            return

        fresh = list(spots or [])
        filtered = filter_spots(fresh, session.country, session.query, session.names)
        if filtered and all_forecasts_empty(filtered):
            log.debug("Collection refresh has no forecasts; keeping displayed data")
            return

        session.spots = fresh
        ops = reconcile(session.rendered, filtered, prune_missing=self._prune_missing)
        if not ops:
            log.debug("Collection refresh unchanged")
            return

        session.rendered = apply_patch(session.rendered, ops)
        session.last_render_at = utcnow()
        log.info("Collection refreshed", ops=len(ops))
        self._surface.apply_patch(ops)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _fail(self, session: CollectionSession, error_class: ErrorClass, detail_key: str) -> None:
        session.timers.cancel_all()
        session.retry_timer = None
        session.refresh_timer = None
        session.state = SessionState.ERROR
        session.error = error_class
        session.last_render_at = utcnow()
        self._session_logger(session).info(
            "Collection session failed", error_class=error_class.value, detail=detail_key
        )
        self._surface.render_error(error_class, detail_key)

    def _terminate(self) -> None:
        session = self._session
        if session is None or session.state == SessionState.TERMINATED:
            return
        session.timers.cancel_all()
        session.retry_timer = None
        session.refresh_timer = None
        session.state = SessionState.TERMINATED
        self._session_logger(session).info("Collection session terminated")
