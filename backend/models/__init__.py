from .spot import Spot, Forecast, CurrentConditions
from .types import ErrorClass, SessionState, READY_STATES

__all__ = [
    "Spot",
    "Forecast",
    "CurrentConditions",
    "ErrorClass",
    "SessionState",
    "READY_STATES",
]
