"""Shared test fixtures."""

from collections.abc import Callable
from typing import Any

import httpx
import numpy as np
import pytest

from carbonlink.core.config import Settings
from carbonlink.schemas.carbon import OnChainCredits
from carbonlink.schemas.observations import (
    Coordinate,
    FireObservation,
    Observations,
    RealSource,
    SatelliteObservation,
    SoilObservation,
    WeatherObservation,
)
from carbonlink.services.chain import Fulfillment
from carbonlink.services.synthetic import SyntheticObservationGenerator

# Inputs for which every balance-mode adjustment factor is exactly 1.0
NEUTRAL_WEATHER = {
    "temperature": 25.0,
    "humidity": 70.0,
    "rainfall": 1500.0,
    "wind_speed": 5.0,
    "solar_radiation": 600.0,
}
NEUTRAL_SATELLITE = {
    "ndvi": 0.5,
    "evi": 0.3,
    "lai": 3.0,
    "biomass": 10000.0,
    "cloud_cover": 10.0,
    "forest_health": 0.9,
}
NEUTRAL_SOIL = {
    "moisture": 40.0,
    "temperature": 20.0,
    "ph": 6.5,
    "organic_matter": 3.0,
    "nitrogen": 100.0,
    "phosphorus": 20.0,
    "potassium": 150.0,
}
NEUTRAL_FIRE = {"fire_risk": 0.0, "active_fires": 0, "burned_area": 0.0}


def make_observations(
    weather: dict[str, Any] | None = None,
    satellite: dict[str, Any] | None = None,
    soil: dict[str, Any] | None = None,
    fire: dict[str, Any] | None = None,
    coordinate: Coordinate | None = None,
) -> Observations:
    """Build an Observations bundle from neutral values, overriding selected fields."""
    source = RealSource(provider_id="test")
    return Observations(
        coordinate=coordinate or Coordinate(latitude=-3.4653, longitude=-62.2159),
        weather=WeatherObservation(**{**NEUTRAL_WEATHER, **(weather or {})}, source=source),
        satellite=SatelliteObservation(**{**NEUTRAL_SATELLITE, **(satellite or {})}, source=source),
        soil=SoilObservation(**{**NEUTRAL_SOIL, **(soil or {})}, source=source),
        fire=FireObservation(**{**NEUTRAL_FIRE, **(fire or {})}, source=source),
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeContract:
    """In-memory ProjectContract with scripted fulfillments."""

    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.fulfillments: dict[str, Fulfillment] = {}
        self.polls = 0
        self.send_error: Exception | None = None
        self.poll_errors: list[Exception] = []
        self.credits = OnChainCredits(total_issued=850, buffer=150, carbon_balance=1000.0)

    async def send_request(self, data: bytes) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)
        return f"0xtx{len(self.sent)}"

    async def confirm(self, tx_hash: str) -> str:
        return tx_hash.replace("tx", "req")

    async def get_fulfillment(self, request_id: str) -> Fulfillment | None:
        self.polls += 1
        if self.poll_errors:
            raise self.poll_errors.pop(0)
        return self.fulfillments.get(request_id)

    async def read_credits(self) -> OnChainCredits:
        return self.credits

    def fulfill(self, request_id: str, response: bytes = b"", error: bytes = b"") -> None:
        self.fulfillments[request_id] = Fulfillment(request_id=request_id, response=response, error=error)


@pytest.fixture
def coordinate() -> Coordinate:
    return Coordinate(latitude=-3.4653, longitude=-62.2159)


@pytest.fixture
def observations() -> Observations:
    return make_observations()


@pytest.fixture
def synthetic() -> SyntheticObservationGenerator:
    return SyntheticObservationGenerator(rng=np.random.default_rng(42))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openweather_api_key="ow-key",
        sentinel_client_id="sh-id",
        sentinel_client_secret="sh-secret",
        copernicus_access_token="cop-token",
        nasa_firms_api_key="firms-key",
    )


@pytest.fixture
def fake_contract() -> FakeContract:
    return FakeContract()
