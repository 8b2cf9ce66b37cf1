"""API routes for observations, carbon assessment, credit issuance and oracle requests."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from carbonlink.core.dependencies import ServiceContainer, get_services
from carbonlink.core.errors import (
    CarbonLinkError,
    ChainUnavailableError,
    MissingInputError,
    OracleRejectionError,
    OracleTimeoutError,
    OutstandingRequestError,
    ValidationError,
)
from carbonlink.schemas.carbon import (
    AssessmentRequest,
    AssessmentResponse,
    CreditIssuance,
    IssuanceRequest,
    OnChainCredits,
    OracleRequest,
    OracleSubmission,
    ValidationReport,
)
from carbonlink.schemas.observations import Coordinate, Observations
from carbonlink.services import calculator, issuance

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES: dict[type[CarbonLinkError], int] = {
    ValidationError: 422,
    MissingInputError: 422,
    OutstandingRequestError: 409,
    OracleRejectionError: 502,
    ChainUnavailableError: 503,
    OracleTimeoutError: 504,
}


def _http_error(exc: CarbonLinkError) -> HTTPException:
    status = next((code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 500)
    return HTTPException(status_code=status, detail=exc.to_dict())


def _require_request(services: ServiceContainer, project_id: str) -> OracleRequest:
    request = services.coordinator.get(project_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"No oracle request for project {project_id}")
    return request


# ── Observations ────────────────────────────────────────────────────────────


@router.get("/observations", response_model=Observations)
async def observations(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
    services: ServiceContainer = Depends(get_services),
) -> Observations:
    """Aggregate weather, satellite, soil and fire data for a coordinate.

    Each domain carries its provenance; unavailable providers are replaced
    with synthetic values rather than failing the request.
    """
    return await services.aggregator.fetch_all(Coordinate(latitude=lat, longitude=lon))


# ── Carbon Assessment ───────────────────────────────────────────────────────


@router.post("/carbon/assess", response_model=AssessmentResponse)
async def assess(
    body: AssessmentRequest,
    services: ServiceContainer = Depends(get_services),
) -> AssessmentResponse:
    """Aggregate observations and score them in balance, stock or offset mode."""
    data = await services.aggregator.fetch_all(body.coordinate)
    try:
        if body.strict:
            calculator.ensure_valid(data, body.parameters.area)
        assessment = calculator.compute_assessment(
            data,
            body.parameters,
            mode=body.mode,
            period=body.period,
            config=services.calculator_config,
        )
    except CarbonLinkError as exc:
        raise _http_error(exc) from exc
    return AssessmentResponse(assessment=assessment, provenance=data.provenance())


@router.post("/carbon/validate", response_model=ValidationReport)
async def validate(
    body: AssessmentRequest,
    services: ServiceContainer = Depends(get_services),
) -> ValidationReport:
    """Report out-of-range inputs for a coordinate and project area."""
    data = await services.aggregator.fetch_all(body.coordinate)
    violations = calculator.validate(data, body.parameters.area)
    return ValidationReport(
        valid=not violations,
        violations=violations,
        provenance=data.provenance(),
    )


# ── Credits ─────────────────────────────────────────────────────────────────


@router.post("/credits/evaluate", response_model=CreditIssuance)
async def evaluate_credits(
    body: IssuanceRequest,
    services: ServiceContainer = Depends(get_services),
) -> CreditIssuance:
    """Mint eligibility and tradable/buffer split for accrued carbon."""
    settings = services.settings
    threshold = body.threshold if body.threshold is not None else settings.mint_threshold
    try:
        return issuance.evaluate_amount(body.current, threshold, settings.buffer_rate)
    except ValidationError as exc:
        raise _http_error(exc) from exc


@router.get("/credits/onchain", response_model=OnChainCredits)
async def onchain_credits(services: ServiceContainer = Depends(get_services)) -> OnChainCredits:
    try:
        return await services.contract.read_credits()
    except CarbonLinkError as exc:
        raise _http_error(exc) from exc


# ── Oracle Requests ─────────────────────────────────────────────────────────


@router.post("/oracle/{project_id}/submit", response_model=OracleRequest, status_code=202)
async def submit_oracle_request(
    project_id: str,
    body: OracleSubmission,
    services: ServiceContainer = Depends(get_services),
) -> OracleRequest:
    """Submit an off-chain computation request and wait for it in the background.

    Returns as soon as the submission is confirmed (state ``pending``). Poll
    ``GET /oracle/{project_id}`` for the outcome.
    """
    coordinator = services.coordinator
    try:
        request = await coordinator.submit(project_id, body.coordinate, body.parameters)
    except CarbonLinkError as exc:
        raise _http_error(exc) from exc
    coordinator.watch(request)
    return request


@router.post("/oracle/{project_id}/poll", response_model=OracleRequest)
async def poll_oracle_request(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
) -> OracleRequest:
    request = _require_request(services, project_id)
    try:
        return await services.coordinator.poll(request)
    except CarbonLinkError as exc:
        raise _http_error(exc) from exc


@router.get("/oracle/{project_id}", response_model=OracleRequest)
async def get_oracle_request(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
) -> OracleRequest:
    return _require_request(services, project_id)


@router.delete("/oracle/{project_id}", response_model=OracleRequest)
async def cancel_oracle_request(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
) -> OracleRequest:
    """Stop waiting on a project's request. A still-open request ends ``failed``."""
    _require_request(services, project_id)
    request = await services.coordinator.cancel(project_id)
    logger.info(f"Oracle request for {project_id} cancelled via API (state={request.state})")
    return request
