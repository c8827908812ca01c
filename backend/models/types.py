"""Enumerations shared by the sync controllers, the API and the tests."""

from __future__ import annotations

from enum import Enum


class ErrorClass(str, Enum):
    """Classification of a failed spot fetch."""

    NOT_FOUND = "not_found"  # Spot does not exist; terminal for the session
    TIMEOUT = "timeout"  # Forecast polling budget exhausted; terminal
    TRANSIENT = "transient"  # Network/server hiccup; retried on the next tick


class SessionState(str, Enum):
    IDLE = "idle"
    INITIAL_LOADING = "initial_loading"
    POLLING = "polling"
    READY = "ready"
    BACKGROUND_REFRESHING = "background_refreshing"
    ERROR = "error"
    TERMINATED = "terminated"


READY_STATES = frozenset({SessionState.READY, SessionState.BACKGROUND_REFRESHING})
