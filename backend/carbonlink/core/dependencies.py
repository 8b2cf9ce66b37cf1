"""Service container built once per process and resolved by route dependencies."""

from dataclasses import dataclass

import httpx
from fastapi import Request

from carbonlink.core.config import Settings
from carbonlink.services.aggregator import EnvironmentalDataAggregator
from carbonlink.services.cache import ObservationCache
from carbonlink.services.calculator import DEFAULT_CONFIG, CalculatorConfig
from carbonlink.services.chain import ProjectContract, Web3ProjectContract
from carbonlink.services.local_oracle import LocalOracleNetwork
from carbonlink.services.oracle import OracleRequestCoordinator
from carbonlink.services.providers import default_providers
from carbonlink.services.synthetic import SyntheticObservationGenerator


@dataclass
class ServiceContainer:
    settings: Settings
    aggregator: EnvironmentalDataAggregator
    contract: ProjectContract
    coordinator: OracleRequestCoordinator
    calculator_config: CalculatorConfig = DEFAULT_CONFIG


def build_services(settings: Settings, client: httpx.AsyncClient) -> ServiceContainer:
    cache = ObservationCache(
        ttl_seconds=settings.cache_ttl_seconds,
        precision=settings.cache_coordinate_precision,
    )
    aggregator = EnvironmentalDataAggregator(
        providers=default_providers(client, settings),
        cache=cache,
        synthetic=SyntheticObservationGenerator(),
    )

    contract: ProjectContract
    if settings.oracle_backend == "web3":
        contract = Web3ProjectContract(settings)
    else:
        contract = LocalOracleNetwork(
            aggregator,
            fulfillment_delay=settings.oracle_fulfillment_delay_seconds,
            threshold=settings.mint_threshold,
            buffer_rate=settings.buffer_rate,
        )

    coordinator = OracleRequestCoordinator(
        contract,
        poll_interval=settings.oracle_poll_interval_seconds,
        max_wait=settings.oracle_max_wait_seconds,
    )
    return ServiceContainer(
        settings=settings,
        aggregator=aggregator,
        contract=contract,
        coordinator=coordinator,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container created in the app lifespan."""
    return request.app.state.services
