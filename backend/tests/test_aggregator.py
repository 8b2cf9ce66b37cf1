"""Tests for the environmental data aggregator: fallback, provenance and caching."""

import httpx
import numpy as np
import pytest

from carbonlink.core.config import Settings
from carbonlink.core.errors import ProviderError
from carbonlink.schemas.observations import Coordinate, RealSource, SyntheticSource
from carbonlink.services.aggregator import EnvironmentalDataAggregator
from carbonlink.services.cache import ObservationCache
from carbonlink.services.providers import Provider
from carbonlink.services.synthetic import (
    FIRE_RANGES,
    SATELLITE_RANGES,
    SOIL_RANGES,
    WEATHER_RANGES,
    SyntheticObservationGenerator,
)


class ScriptedProvider(Provider):
    """Provider returning a fixed payload (or raising) and counting calls."""

    def __init__(self, domain: str, result: dict | Exception) -> None:
        super().__init__(client=None, settings=Settings(_env_file=None))
        self.domain = domain
        self.provider_id = f"scripted-{domain}"
        self.result = result
        self.calls = 0

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _aggregator(providers: list[Provider], synthetic: SyntheticObservationGenerator) -> EnvironmentalDataAggregator:
    return EnvironmentalDataAggregator(
        providers={p.domain: p for p in providers},
        cache=ObservationCache(),
        synthetic=synthetic,
    )


def _in_ranges(values: dict, ranges: dict[str, tuple[float, float]]) -> bool:
    return all(low <= values[name] <= high for name, (low, high) in ranges.items())


async def test_all_providers_down_yields_synthetic_everywhere(coordinate, synthetic) -> None:
    aggregator = _aggregator([], synthetic)

    result = await aggregator.fetch_all(coordinate)

    assert result.provenance() == {
        "weather": "synthetic",
        "satellite": "synthetic",
        "soil": "synthetic",
        "fire": "synthetic",
    }
    assert _in_ranges(result.weather.model_dump(), WEATHER_RANGES)
    assert _in_ranges(result.satellite.model_dump(), SATELLITE_RANGES)
    assert _in_ranges(result.soil.model_dump(), SOIL_RANGES)
    assert _in_ranges(result.fire.model_dump(), FIRE_RANGES)
    assert result.fire.active_fires in (0, 1)


async def test_one_failing_domain_does_not_affect_others(coordinate, synthetic) -> None:
    weather = ScriptedProvider(
        "weather", {"temperature": 24.0, "humidity": 75.0, "rainfall": 3.0, "wind_speed": 1.5}
    )
    satellite = ScriptedProvider("satellite", httpx.ConnectError("connection refused"))
    aggregator = _aggregator([weather, satellite], synthetic)

    result = await aggregator.fetch_all(coordinate)

    assert isinstance(result.weather.source, RealSource)
    assert result.weather.temperature == 24.0
    assert isinstance(result.satellite.source, SyntheticSource)
    assert "network error" in result.satellite.source.reason


async def test_unexpected_provider_exception_falls_back_without_breaking_fan_out(coordinate, synthetic) -> None:
    weather = ScriptedProvider(
        "weather", {"temperature": 24.0, "humidity": 75.0, "rainfall": 3.0, "wind_speed": 1.5}
    )
    satellite = ScriptedProvider("satellite", KeyError(-1))
    aggregator = _aggregator([weather, satellite], synthetic)

    result = await aggregator.fetch_all(coordinate)

    assert isinstance(result.weather.source, RealSource)
    assert isinstance(result.satellite.source, SyntheticSource)
    assert "provider error" in result.satellite.source.reason
    assert result.provenance()["satellite"] == "synthetic"


async def test_partial_payload_records_filled_fields(coordinate, synthetic) -> None:
    satellite = ScriptedProvider("satellite", {"ndvi": 0.66, "evi": 0.4, "cloud_cover": 5.0})
    aggregator = _aggregator([satellite], synthetic)

    result = await aggregator.fetch_satellite(coordinate)

    assert result.ndvi == 0.66
    assert result.source == RealSource(
        provider_id="scripted-satellite",
        filled_fields=["biomass", "forest_health", "lai"],
    )


async def test_out_of_range_reading_falls_back(coordinate, synthetic) -> None:
    satellite = ScriptedProvider("satellite", {"ndvi": 1.7, "evi": 0.4, "cloud_cover": 5.0})
    aggregator = _aggregator([satellite], synthetic)

    result = await aggregator.fetch_satellite(coordinate)

    assert isinstance(result.source, SyntheticSource)
    assert "out-of-range" in result.source.reason
    assert 0.3 <= result.ndvi <= 0.7


async def test_provider_error_reason_is_kept(coordinate, synthetic) -> None:
    soil = ScriptedProvider("soil", ProviderError("soil", "scripted-soil", "access token not configured"))
    aggregator = _aggregator([soil], synthetic)

    result = await aggregator.fetch_soil(coordinate)

    assert result.source == SyntheticSource(reason="access token not configured")


async def test_cache_hit_skips_provider(coordinate, synthetic) -> None:
    fire = ScriptedProvider("fire", {"fire_risk": 0.1, "active_fires": 0, "burned_area": 0.0})
    aggregator = _aggregator([fire], synthetic)

    first = await aggregator.fetch_fire(coordinate)
    second = await aggregator.fetch_fire(Coordinate(latitude=coordinate.latitude + 1e-6, longitude=coordinate.longitude))

    assert fire.calls == 1
    assert second is first


async def test_synthetic_fallback_is_cached_too(coordinate, synthetic) -> None:
    aggregator = _aggregator([], synthetic)
    first = await aggregator.fetch_weather(coordinate)
    second = await aggregator.fetch_weather(coordinate)
    assert second is first


def test_generator_is_reproducible_with_seed() -> None:
    a = SyntheticObservationGenerator(np.random.default_rng(7)).generate("soil")
    b = SyntheticObservationGenerator(np.random.default_rng(7)).generate("soil")
    assert a == b


def test_generator_rejects_unknown_domain(synthetic) -> None:
    with pytest.raises(ValueError):
        synthetic.generate("ocean")
