"""Environmental data aggregation: fetch, cache, fall back to synthetic data.

The four observation domains are fetched concurrently and independently: a
failing provider only affects its own domain, which is filled from the
synthetic generator and tagged as such.
"""

import asyncio
import logging

import httpx
import pydantic

from carbonlink.core.errors import ProviderError
from carbonlink.schemas.observations import (
    Coordinate,
    FireObservation,
    Observations,
    RealSource,
    SatelliteObservation,
    SoilObservation,
    SyntheticSource,
    WeatherObservation,
)
from carbonlink.services.cache import ObservationCache
from carbonlink.services.providers import Provider
from carbonlink.services.synthetic import SyntheticObservationGenerator

logger = logging.getLogger(__name__)

OBSERVATION_MODELS: dict[str, type[pydantic.BaseModel]] = {
    "weather": WeatherObservation,
    "satellite": SatelliteObservation,
    "soil": SoilObservation,
    "fire": FireObservation,
}


class EnvironmentalDataAggregator:
    def __init__(
        self,
        providers: dict[str, Provider],
        cache: ObservationCache,
        synthetic: SyntheticObservationGenerator,
    ) -> None:
        self._providers = providers
        self._cache = cache
        self._synthetic = synthetic

    async def fetch_weather(self, coordinate: Coordinate) -> WeatherObservation:
        return await self._resolve("weather", coordinate)

    async def fetch_satellite(self, coordinate: Coordinate) -> SatelliteObservation:
        return await self._resolve("satellite", coordinate)

    async def fetch_soil(self, coordinate: Coordinate) -> SoilObservation:
        return await self._resolve("soil", coordinate)

    async def fetch_fire(self, coordinate: Coordinate) -> FireObservation:
        return await self._resolve("fire", coordinate)

    async def fetch_all(self, coordinate: Coordinate) -> Observations:
        """Fetch every domain concurrently for one coordinate."""
        weather, satellite, soil, fire = await asyncio.gather(
            self.fetch_weather(coordinate),
            self.fetch_satellite(coordinate),
            self.fetch_soil(coordinate),
            self.fetch_fire(coordinate),
        )
        return Observations(
            coordinate=coordinate,
            weather=weather,
            satellite=satellite,
            soil=soil,
            fire=fire,
        )

    async def _resolve(self, domain: str, coordinate: Coordinate) -> pydantic.BaseModel:
        cached = self._cache.get(domain, coordinate)
        if cached is not None:
            logger.debug(f"Cache hit for {domain} at {coordinate.latitude},{coordinate.longitude}")
            return cached

        try:
            observation = await self._fetch_real(domain, coordinate)
        except ProviderError as exc:
            logger.warning(
                f"{domain} at ({coordinate.latitude}, {coordinate.longitude}): "
                f"{exc.message}; using synthetic data"
            )
            observation = self._fetch_synthetic(domain, exc.reason)

        self._cache.set(domain, coordinate, observation)
        return observation

    async def _fetch_real(self, domain: str, coordinate: Coordinate) -> pydantic.BaseModel:
        provider = self._providers.get(domain)
        if provider is None:
            raise ProviderError(domain, "none", "no provider registered")

        try:
            fields = await provider.fetch(coordinate)
        except ProviderError:
            raise
        except httpx.HTTPError as exc:
            raise ProviderError(domain, provider.provider_id, f"network error: {exc!r}") from exc
        except Exception as exc:
            logger.exception(f"{provider.provider_id} raised while fetching {domain}")
            raise ProviderError(domain, provider.provider_id, f"provider error: {exc!r}") from exc

        merged, filled = self._synthetic.complete(domain, fields)
        source = RealSource(provider_id=provider.provider_id, filled_fields=filled)
        try:
            observation = OBSERVATION_MODELS[domain](**merged, source=source)
        except pydantic.ValidationError as exc:
            raise ProviderError(domain, provider.provider_id, "payload failed validation") from exc

        violations = observation.range_violations()
        if violations:
            details = "; ".join(v.message for v in violations)
            raise ProviderError(domain, provider.provider_id, f"out-of-range reading ({details})")
        return observation

    def _fetch_synthetic(self, domain: str, reason: str) -> pydantic.BaseModel:
        fields = self._synthetic.generate(domain)
        return OBSERVATION_MODELS[domain](**fields, source=SyntheticSource(reason=reason))
