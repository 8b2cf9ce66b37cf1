"""CarbonLink Oracle Service: FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carbonlink.api.routes import router
from carbonlink.core.config import settings
from carbonlink.core.dependencies import build_services

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        services = build_services(settings, client)
        app.state.services = services
        logger.info(f"Services ready (oracle backend: {settings.oracle_backend})")
        try:
            yield
        finally:
            await services.coordinator.close()
            close = getattr(services.contract, "close", None)
            if close is not None:
                await close()


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=(
        "Environmental data aggregation and carbon offset scoring for forest carbon projects. "
        "Serves provenance-tagged observations, balance/stock/offset assessments, credit "
        "issuance splits, and drives oracle requests that report results on-chain."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "service": "carbonlink-oracle"}
