from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class Forecast(BaseModel):
    """One forecast row (daily or hourly) as served by the spots API"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date: Optional[str] = None  # e.g. "Mon 14 10:00" or "Today"
    wind: float = 0.0  # knots
    gusts: float = 0.0  # knots
    direction: Optional[str] = None  # cardinal, e.g. "NW"
    temp: float = 0.0  # celsius
    precipitation: float = 0.0  # mm
    wave: Optional[float] = None  # metres, only for sea spots


class CurrentConditions(BaseModel):
    """Live station reading attached to a spot"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date: Optional[str] = None
    wind: float = 0.0
    gusts: float = 0.0
    direction: Optional[str] = None
    temp: float = 0.0
    precipitation: float = 0.0

    @property
    def is_empty(self) -> bool:
        # Upstream sends a zeroed record when the station has nothing to report.
        return (
            self.date is None
            and self.direction is None
            and self.wind == 0
            and self.gusts == 0
            and self.temp == 0
        )


class Spot(BaseModel):
    """A kite spot with its forecasts and optional live conditions.

    Unknown upstream keys are preserved so equality comparisons between two
    fetches see every change the server made.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    country: str = ""
    wg_id: Optional[int] = Field(default=None, alias="wgId")
    current_conditions: Optional[CurrentConditions] = Field(
        default=None, alias="currentConditions"
    )
    forecast: list[Forecast] = []
    forecast_hourly: list[Forecast] = Field(default_factory=list, alias="forecastHourly")
    windguru_url: Optional[str] = Field(default=None, alias="windguruUrl")
    windfinder_url: Optional[str] = Field(default=None, alias="windfinderUrl")
    icm_url: Optional[str] = Field(default=None, alias="icmUrl")
    webcam_url: Optional[str] = Field(default=None, alias="webcamUrl")
    location_url: Optional[str] = Field(default=None, alias="locationUrl")
    ai_analysis: Optional[str] = Field(default=None, alias="aiAnalysis")
    embedded_map: Optional[str] = Field(default=None, alias="embeddedMap")
    spot_info: Optional[dict[str, Any]] = Field(default=None, alias="spotInfo")
    spot_info_pl: Optional[dict[str, Any]] = Field(default=None, alias="spotInfoPL")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    sponsors: list[dict[str, Any]] = []

    @property
    def key(self) -> str:
        """Identity used to match rendered items across collection refreshes"""
        return self.name

    @property
    def live_conditions(self) -> Optional[CurrentConditions]:
        if self.current_conditions is None or self.current_conditions.is_empty:
            return None
        return self.current_conditions

    @classmethod
    def from_api_response(cls, data: dict) -> "Spot":
        """Parse a spot from a spots API response"""
        return cls.model_validate(data)

    def to_api_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
