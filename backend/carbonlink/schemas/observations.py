"""Pydantic schemas for environmental observations and their provenance."""

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# ── Provenance ──────────────────────────────────────────────────────────────


class RealSource(BaseModel):
    """Observation read from a live provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["real"] = "real"
    provider_id: str
    filled_fields: list[str] = Field(
        default_factory=list,
        description="Fields the provider does not supply, completed synthetically",
    )


class SyntheticSource(BaseModel):
    """Observation generated because the provider was unavailable or invalid."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["synthetic"] = "synthetic"
    reason: str


Source = Annotated[RealSource | SyntheticSource, Field(discriminator="kind")]


# ── Range checks ────────────────────────────────────────────────────────────


class RangeViolation(BaseModel):
    """A value outside its declared plausible range."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: float
    minimum: float | None = None
    maximum: float | None = None

    @property
    def message(self) -> str:
        if self.minimum is not None and self.maximum is not None:
            return f"{self.field} must be between {self.minimum:g} and {self.maximum:g}"
        if self.minimum is not None:
            return f"{self.field} must be at least {self.minimum:g}"
        return f"{self.field} must be at most {self.maximum:g}"


def check_range(
    violations: list[RangeViolation],
    field: str,
    value: float,
    minimum: float | None = None,
    maximum: float | None = None,
    *,
    exclusive_min: bool = False,
) -> None:
    low = minimum is not None and (value <= minimum if exclusive_min else value < minimum)
    high = maximum is not None and value > maximum
    if low or high:
        violations.append(
            RangeViolation(field=field, value=value, minimum=minimum, maximum=maximum)
        )


# ── Coordinates ─────────────────────────────────────────────────────────────


class Coordinate(BaseModel):
    """Where a set of observations applies."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    elevation: float | None = Field(default=None, description="Meters above sea level")


# ── Observations ────────────────────────────────────────────────────────────


def _now() -> datetime:
    return datetime.now(UTC)


class WeatherObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(description="Air temperature (°C)")
    humidity: float = Field(description="Relative humidity (%)")
    rainfall: float = Field(description="Precipitation (mm)")
    wind_speed: float = Field(description="Wind speed (m/s)")
    solar_radiation: float = Field(description="Solar radiation (W/m²)")
    timestamp: datetime = Field(default_factory=_now)
    source: Source

    def range_violations(self) -> list[RangeViolation]:
        violations: list[RangeViolation] = []
        check_range(violations, "temperature", self.temperature, -90, 60)
        check_range(violations, "humidity", self.humidity, 0, 100)
        check_range(violations, "rainfall", self.rainfall, 0)
        check_range(violations, "wind_speed", self.wind_speed, 0)
        check_range(violations, "solar_radiation", self.solar_radiation, 0)
        return violations


class SatelliteObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    ndvi: float = Field(description="Normalized Difference Vegetation Index")
    evi: float = Field(description="Enhanced Vegetation Index")
    lai: float = Field(description="Leaf area index")
    biomass: float = Field(description="Above-ground biomass (kg/ha)")
    cloud_cover: float = Field(description="Cloud cover over the scene (%)")
    forest_health: float = Field(description="Canopy health score in [0, 1]")
    timestamp: datetime = Field(default_factory=_now)
    source: Source

    def range_violations(self) -> list[RangeViolation]:
        violations: list[RangeViolation] = []
        check_range(violations, "ndvi", self.ndvi, 0, 1)
        check_range(violations, "evi", self.evi, 0, 1)
        check_range(violations, "lai", self.lai, 0)
        check_range(violations, "biomass", self.biomass, 0)
        check_range(violations, "cloud_cover", self.cloud_cover, 0, 100)
        check_range(violations, "forest_health", self.forest_health, 0, 1)
        return violations


class SoilObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    moisture: float = Field(description="Volumetric soil moisture (%)")
    temperature: float = Field(description="Soil temperature (°C)")
    ph: float
    organic_matter: float = Field(description="Organic matter (%)")
    nitrogen: float = Field(description="mg/kg")
    phosphorus: float = Field(description="mg/kg")
    potassium: float = Field(description="mg/kg")
    timestamp: datetime = Field(default_factory=_now)
    source: Source

    @property
    def moisture_fraction(self) -> float:
        return self.moisture / 100

    def range_violations(self) -> list[RangeViolation]:
        violations: list[RangeViolation] = []
        check_range(violations, "soil_moisture", self.moisture_fraction, 0, 1)
        check_range(violations, "soil_temperature", self.temperature, -50, 60)
        check_range(violations, "ph", self.ph, 0, 14)
        check_range(violations, "organic_matter", self.organic_matter, 0, 100)
        check_range(violations, "nitrogen", self.nitrogen, 0)
        check_range(violations, "phosphorus", self.phosphorus, 0)
        check_range(violations, "potassium", self.potassium, 0)
        return violations


class FireObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    fire_risk: float = Field(description="Fire risk score in [0, 1]")
    active_fires: int
    burned_area: float = Field(description="Burned area (ha)")
    timestamp: datetime = Field(default_factory=_now)
    source: Source

    def range_violations(self) -> list[RangeViolation]:
        violations: list[RangeViolation] = []
        check_range(violations, "fire_risk", self.fire_risk, 0, 1)
        check_range(violations, "active_fires", self.active_fires, 0)
        check_range(violations, "burned_area", self.burned_area, 0)
        return violations


class Observations(BaseModel):
    """All four observation domains for one coordinate."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    weather: WeatherObservation
    satellite: SatelliteObservation
    soil: SoilObservation
    fire: FireObservation

    def provenance(self) -> dict[str, str]:
        """Map each domain to ``real`` or ``synthetic``."""
        return {
            "weather": self.weather.source.kind,
            "satellite": self.satellite.source.kind,
            "soil": self.soil.source.kind,
            "fire": self.fire.source.kind,
        }
