"""Live synchronization for the single spot detail view.

One ``SpotSyncController`` exists per view. Each ``start`` (navigation or
forecast model switch) replaces the view's ``SyncSession`` wholesale:

    idle -> initial_loading -> ready | polling | error
    polling -> ready | error (not_found / timeout)
    ready -> background_refreshing -> ready  (repeats every refresh interval)
    any -> terminated

Every timer and fetch callback carries the generation it was armed under and
is a no-op once the view has moved on to a newer generation. Cancellation is
synchronous: ``start``/``stop`` cancel the session's timers before returning,
and late fetch results are dropped by the generation check.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from interfaces.render_surface import RenderSurface
from interfaces.spots_source import SpotsSource
from models.spot import Spot
from models.types import READY_STATES, ErrorClass, SessionState
from services.preferences import ForecastModelSelection
from services.spot_sync.readiness import is_ready
from services.spot_sync.scheduler import AsyncioScheduler, Cancellable, Scheduler, TimerGroup
from services.spot_sync.timings import SyncTimings
from services.spots_client import SpotFetchError
from utils.logger import get_logger
from utils.utcnow import utc_isoformat, utcnow

logger = get_logger("spot_sync.detail")

# Translation keys handed to the render surface
LOADING_SPOT_DATA = "loadingSpotData"
LOADING_FORECAST = "loadingForecast"
ERROR_SPOT_NOT_FOUND = "spotNotFound"
ERROR_LOADING_SPOT = "errorLoadingSpot"
ERROR_FORECAST_TIMEOUT = "forecastTimeout"
ERROR_INVALID_SPOT_ID = "invalidSpotId"


class NoActiveSessionError(RuntimeError):
    """An operation needs a started, non-terminated session."""


@dataclass
class SyncSession:
    """State of one (spot, model) session. Owned by its controller."""

    spot_id: Optional[str]
    model: Optional[str]
    generation: int
    timers: TimerGroup
    state: SessionState = SessionState.IDLE
    snapshot: Optional[Spot] = None
    error: Optional[ErrorClass] = None
    fetch_in_flight: bool = False
    fetch_count: int = 0
    # Initial load waits for both the fetch and the minimum display floor.
    floor_elapsed: bool = False
    initial_result: Optional[tuple[Optional[Spot], Optional[SpotFetchError]]] = None
    poll_timer: Optional[Cancellable] = None
    timeout_timer: Optional[Cancellable] = None
    refresh_timer: Optional[Cancellable] = None
    started_at: datetime = field(default_factory=utcnow)
    last_render_at: Optional[datetime] = None


FetchDone = Callable[[SyncSession, Optional[Spot], Optional[SpotFetchError]], None]


class SpotSyncController:
    """Owns the detail view's session and drives it through its states."""

    def __init__(
        self,
        client: SpotsSource,
        surface: RenderSurface,
        scheduler: Optional[Scheduler] = None,
        timings: Optional[SyncTimings] = None,
        model_selection: Optional[ForecastModelSelection] = None,
        view_id: str = "default",
    ):
        self._client = client
        self._surface = surface
        self._scheduler = scheduler or AsyncioScheduler()
        self._timings = timings or SyncTimings.from_settings()
        self._model_selection = model_selection
        self.view_id = view_id
        self._generation = 0
        self._session: Optional[SyncSession] = None
        self._logger = logger.with_context(view_id=view_id)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def session(self) -> Optional[SyncSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def snapshot(self) -> Optional[Spot]:
        return self._session.snapshot if self._session else None

    @property
    def model_selection(self) -> Optional[ForecastModelSelection]:
        return self._model_selection

    def _current(self, generation: int) -> Optional[SyncSession]:
        session = self._session
        if session is None or generation != self._generation or session.generation != generation:
            return None
        return session

    def _session_logger(self, session: SyncSession):
        return self._logger.with_context(
            spot_id=session.spot_id,
            model=session.model,
            generation=session.generation,
        )

    # ------------------------------------------------------------------
    # External operations
    # ------------------------------------------------------------------

    def start(self, spot_id: Optional[str], model: Optional[str] = None) -> SyncSession:
        """Terminate the current session and begin loading ``spot_id``."""
        self._terminate()
        self._generation += 1

        if model is None and self._model_selection is not None:
            model = self._model_selection.get()
        spot_text = str(spot_id).strip() if spot_id is not None else ""

        session = SyncSession(
            spot_id=spot_text or None,
            model=model or None,
            generation=self._generation,
            timers=TimerGroup(self._scheduler),
        )
        self._session = session
        log = self._session_logger(session)

        if session.spot_id is None:
            log.warning("Spot session started without a spot id")
            self._fail(session, ErrorClass.NOT_FOUND, ERROR_INVALID_SPOT_ID)
            return session

        session.state = SessionState.INITIAL_LOADING
        log.info("Spot session started")
        self._surface.render_loading(LOADING_SPOT_DATA)

        generation = session.generation
        session.timers.call_later(
            self._timings.min_display,
            lambda: self._on_min_display_elapsed(generation),
        )
        self._spawn_fetch(session, self._on_initial_fetch)
        return session

    def switch_model(self, model: str) -> SyncSession:
        """Restart the current spot with another forecast model."""
        session = self._session
        if session is None or session.spot_id is None or session.state == SessionState.TERMINATED:
            raise NoActiveSessionError("No spot session to switch")
        if self._model_selection is not None:
            model = self._model_selection.set(model)
        self._session_logger(session).info("Switching forecast model", new_model=model)
        return self.start(session.spot_id, model)

    def stop(self) -> None:
        """Cancel everything; late fetch results will be discarded."""
        self._terminate()
        self._generation += 1

    def status(self) -> dict[str, Any]:
        session = self._session
        if session is None:
            return {
                "view_id": self.view_id,
                "state": SessionState.IDLE.value,
                "generation": self._generation,
                "spot_id": None,
                "model": None,
                "error": None,
                "has_snapshot": False,
            }
        return {
            "view_id": self.view_id,
            "state": session.state.value,
            "generation": self._generation,
            "spot_id": session.spot_id,
            "model": session.model,
            "error": session.error.value if session.error else None,
            "has_snapshot": session.snapshot is not None,
            "snapshot_name": session.snapshot.name if session.snapshot else None,
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

    def _spawn_fetch(self, session: SyncSession, on_done: FetchDone) -> None:
        session.fetch_in_flight = True
        session.fetch_count += 1
        self._scheduler.spawn(self._run_fetch(session, session.generation, on_done))

    async def _run_fetch(self, session: SyncSession, generation: int, on_done: FetchDone) -> None:
        spot: Optional[Spot] = None
        error: Optional[SpotFetchError] = None
        try:
            spot = await self._client.fetch_spot(session.spot_id, session.model)
        except asyncio.CancelledError:
            raise
        except SpotFetchError as exc:
            error = exc
        except Exception as exc:
            self._session_logger(session).exception("Unexpected error fetching spot")
            error = SpotFetchError(ErrorClass.TRANSIENT, str(exc))

        if self._current(generation) is None:
            self._session_logger(session).debug(
                "Discarding stale fetch result", current_generation=self._generation
            )
            return

        session.fetch_in_flight = False
        try:
            on_done(session, spot, error)
        except Exception:
            self._session_logger(session).exception("Fetch completion handler failed")

    # ------------------------------------------------------------------
    # Initial load
    # ------------------------------------------------------------------

    def _on_min_display_elapsed(self, generation: int) -> None:
        session = self._current(generation)
        if session is None:
            return
        session.floor_elapsed = True
        if session.initial_result is not None:
            self._resolve_initial(session)

    def _on_initial_fetch(
        self, session: SyncSession, spot: Optional[Spot], error: Optional[SpotFetchError]
    ) -> None:
        session.initial_result = (spot, error)
        if session.floor_elapsed:
            self._resolve_initial(session)

    def _resolve_initial(self, session: SyncSession) -> None:
        if session.state != SessionState.INITIAL_LOADING or session.initial_result is None:
            return
        spot, error = session.initial_result
        session.initial_result = None

        if error is not None:
            if error.is_not_found:
                self._fail(session, ErrorClass.NOT_FOUND, ERROR_SPOT_NOT_FOUND)
            else:
                self._fail(session, ErrorClass.TRANSIENT, ERROR_LOADING_SPOT)
        elif is_ready(spot):
            self._enter_ready(session, spot)
        else:
            self._enter_polling(session)

    # ------------------------------------------------------------------
    # Polling for readiness
    # ------------------------------------------------------------------

    def _enter_polling(self, session: SyncSession) -> None:
        session.state = SessionState.POLLING
        self._session_logger(session).info(
            "Forecast not ready; polling",
            interval_seconds=self._timings.poll_interval,
            timeout_seconds=self._timings.poll_timeout,
        )
        self._surface.render_loading(LOADING_FORECAST)

        generation = session.generation
        # Armed before the poll interval so a tick due at the same instant loses.
        session.timeout_timer = session.timers.call_later(
            self._timings.poll_timeout,
            lambda: self._on_poll_timeout(generation),
        )
        session.poll_timer = session.timers.call_every(
            self._timings.poll_interval,
            lambda: self._on_poll_tick(generation),
        )

    def _on_poll_tick(self, generation: int) -> None:
        session = self._current(generation)
        if session is None or session.state != SessionState.POLLING:
            return
        if session.fetch_in_flight:
            self._session_logger(session).debug("Skipping poll tick; previous fetch still pending")
            return
        self._spawn_fetch(session, self._on_poll_result)

    def _on_poll_result(
        self, session: SyncSession, spot: Optional[Spot], error: Optional[SpotFetchError]
    ) -> None:
        if session.state != SessionState.POLLING:
            return
        if error is not None:
            if error.is_not_found:
                self._fail(session, ErrorClass.NOT_FOUND, ERROR_SPOT_NOT_FOUND)
            else:
                self._session_logger(session).debug("Polling fetch failed; will retry", error=str(error))
            return
        if not is_ready(spot):
            return

        session.timers.cancel(session.poll_timer)
        session.timers.cancel(session.timeout_timer)
        session.poll_timer = None
        session.timeout_timer = None
        self._enter_ready(session, spot)

    def _on_poll_timeout(self, generation: int) -> None:
        session = self._current(generation)
        if session is None or session.state != SessionState.POLLING:
            return
        session.timers.cancel(session.poll_timer)
        session.poll_timer = None
        self._session_logger(session).warning(
            "Forecast polling timed out", timeout_seconds=self._timings.poll_timeout
        )
        self._fail(session, ErrorClass.TIMEOUT, ERROR_FORECAST_TIMEOUT)

    # ------------------------------------------------------------------
    # Ready + background refresh
    # ------------------------------------------------------------------

    def _enter_ready(self, session: SyncSession, spot: Spot) -> None:
        session.state = SessionState.READY
        session.error = None
        session.snapshot = spot
        self._session_logger(session).info("Spot ready", forecast_rows=len(spot.forecast))
        self._render_ready(session, spot)

        if session.refresh_timer is None or session.refresh_timer.cancelled:
            generation = session.generation
            session.refresh_timer = session.timers.call_every(
                self._timings.refresh_interval,
                lambda: self._on_refresh_tick(generation),
            )

    def _on_refresh_tick(self, generation: int) -> None:
        session = self._current(generation)
        if session is None or session.state not in READY_STATES:
            return
        if session.fetch_in_flight:
            self._session_logger(session).debug("Skipping refresh tick; previous fetch still pending")
            return
        session.state = SessionState.BACKGROUND_REFRESHING
        self._spawn_fetch(session, self._on_refresh_result)

    def _on_refresh_result(
        self, session: SyncSession, spot: Optional[Spot], error: Optional[SpotFetchError]
    ) -> None:
        if session.state != SessionState.BACKGROUND_REFRESHING:
            return
        session.state = SessionState.READY
        log = self._session_logger(session)

        if error is not None:
            if error.is_not_found:
                log.warning("Spot disappeared during background refresh")
                self._fail(session, ErrorClass.NOT_FOUND, ERROR_SPOT_NOT_FOUND)
            else:
                log.warning("Background refresh failed", error=str(error))
            return
        if not is_ready(spot):
            log.debug("Background refresh returned no forecast; keeping displayed data")
            return
        if spot == session.snapshot:
            log.debug("Background refresh unchanged")
            return

        session.snapshot = spot
        log.info("Background refresh updated spot")
        self._render_ready(session, spot)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _render_ready(self, session: SyncSession, spot: Spot) -> None:
        session.last_render_at = utcnow()
        self._surface.render_ready(spot)

    def _fail(self, session: SyncSession, error_class: ErrorClass, detail_key: str) -> None:
        session.timers.cancel_all()
        session.poll_timer = None
        session.timeout_timer = None
        session.refresh_timer = None
        session.state = SessionState.ERROR
        session.error = error_class
        session.last_render_at = utcnow()
        self._session_logger(session).info(
            "Spot session failed", error_class=error_class.value, detail=detail_key
        )
        self._surface.render_error(error_class, detail_key)

    def _terminate(self) -> None:
        session = self._session
        if session is None or session.state == SessionState.TERMINATED:
            return
        session.timers.cancel_all()
        session.poll_timer = None
        session.timeout_timer = None
        session.refresh_timer = None
        session.state = SessionState.TERMINATED
        self._session_logger(session).info("Spot session terminated")
