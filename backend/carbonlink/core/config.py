"""Application configuration via environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from environment / .env file."""

    # Environmental data providers
    openweather_api_key: str | None = None
    openweather_url: str = "https://api.openweathermap.org/data/2.5/weather"
    sentinel_client_id: str | None = None
    sentinel_client_secret: str | None = None
    sentinel_token_url: str = (
        "https://services.sentinel-hub.com/auth/realms/main/protocol/openid-connect/token"
    )
    sentinel_statistics_url: str = "https://services.sentinel-hub.com/api/v1/statistics"
    copernicus_access_token: str | None = None
    copernicus_search_url: str = "https://land.copernicus.eu/api/@search"
    nasa_firms_api_key: str | None = None
    nasa_firms_url: str = "https://firms.modaps.eosdis.nasa.gov/api/area/csv"
    provider_timeout_seconds: float = 15.0

    # Observation cache
    cache_ttl_seconds: float = 300.0
    cache_coordinate_precision: int = 4

    # Credit issuance
    mint_threshold: float = 1000.0
    buffer_rate: float = 0.15

    # Oracle
    oracle_backend: Literal["local", "web3"] = "local"
    oracle_poll_interval_seconds: float = 10.0
    oracle_max_wait_seconds: float = 300.0
    oracle_fulfillment_delay_seconds: float = 2.0
    rpc_url: str = "https://sepolia.infura.io/v3/your-project-id"
    functions_router_address: str = "0x6E2dc0F9DB014aE19888F539E59285D2Ea04244C"
    project_contract_address: str = "0xfd96eFfcac6eeC9c46bE26DddE17a29E5F08688D"
    don_id: str = "0x66756e2d657468657265756d2d7365706f6c69612d3100000000000000000000"
    subscription_id: int = 0
    callback_gas_limit: int = 300_000
    private_key: str | None = None

    # API
    api_title: str = "CarbonLink Oracle Service"
    api_version: str = "0.1.0"
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
