"""Pydantic schemas for project parameters, assessments, credits and oracle requests."""

from datetime import date, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from carbonlink.schemas.observations import Coordinate, RangeViolation

# ── Project parameters ──────────────────────────────────────────────────────


class ProjectType(StrEnum):
    REFORESTATION = "reforestation"
    AFFORESTATION = "afforestation"
    FOREST_CONSERVATION = "forest-conservation"
    AGROFORESTRY = "agroforestry"


class BaselineScenario(StrEnum):
    BUSINESS_AS_USUAL = "business-as-usual"
    DEFORESTATION = "deforestation"
    DEGRADATION = "degradation"


class ProjectParameters(BaseModel):
    """Static description of a forestry project."""

    model_config = ConfigDict(frozen=True)

    area: float = Field(gt=0, description="Project area (hectares)")
    duration: float = Field(gt=0, description="Crediting period (years)")
    project_type: ProjectType = ProjectType.REFORESTATION
    baseline_scenario: BaselineScenario = BaselineScenario.BUSINESS_AS_USUAL


class OffsetPeriod(BaseModel):
    """NDVI endpoints of a stock-change window. Both are required to compute an offset."""

    model_config = ConfigDict(frozen=True)

    ndvi_start: float | None = None
    ndvi_end: float | None = None
    start_date: date | None = None
    end_date: date | None = None


AssessmentMode = Literal["balance", "stock", "offset"]


# ── Balance mode ────────────────────────────────────────────────────────────


class SequestrationBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    biomass_growth: float = Field(description="tCO2e/ha/yr")
    soil_carbon: float = Field(description="tCO2e/ha/yr")
    total: float


class EmissionsBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    baseline: float = Field(description="tCO2e/ha/yr")
    project: float = Field(description="tCO2e/ha/yr")
    leakage: float = Field(description="tCO2e/ha/yr")
    total: float


class CarbonAssessment(BaseModel):
    """Sequestration-minus-emissions balance for a project."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["balance"] = "balance"
    sequestration: SequestrationBreakdown
    emissions: EmissionsBreakdown
    net_carbon_balance: float = Field(description="tCO2e/ha/yr")
    total_project_carbon: float = Field(description="tCO2e over area and duration")
    confidence: float = Field(ge=0, le=1)
    uncertainty: float = Field(description="Percentage")

    @property
    def credit_basis(self) -> float:
        return self.total_project_carbon


# ── Stock / offset modes ────────────────────────────────────────────────────


class StockBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    biomass: float
    soil: float
    environmental: float


class StockAssessment(BaseModel):
    """Point-in-time carbon stock derived from NDVI."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["stock"] = "stock"
    carbon_density: float = Field(description="tC/ha")
    carbon_stock: float = Field(description="tC")
    co2_equivalent: float = Field(description="tCO2")
    confidence_factor: float
    uncertainty: float = Field(description="Percentage")
    breakdown: StockBreakdown

    @property
    def credit_basis(self) -> float:
        return self.co2_equivalent


class OffsetBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    carbon_density_start: float
    carbon_density_end: float
    ndvi_start: float
    ndvi_end: float
    ndvi_change: float
    project_area: float
    confidence_factor: float
    carbon_to_co2_ratio: float


class OffsetAssessment(BaseModel):
    """Carbon stock change between two NDVI observations."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["offset"] = "offset"
    carbon_stock_start: float
    carbon_stock_end: float
    carbon_stock_change: float
    co2_equivalent: float
    confidence_factor: float
    uncertainty: float
    breakdown: OffsetBreakdown
    start_date: date | None = None
    end_date: date | None = None

    @property
    def credit_basis(self) -> float:
        return self.co2_equivalent


Assessment = CarbonAssessment | StockAssessment | OffsetAssessment


# ── Credits ─────────────────────────────────────────────────────────────────


class CreditIssuance(BaseModel):
    """Mintable/reserved split of an assessment's carbon."""

    model_config = ConfigDict(frozen=True)

    total_carbon: float
    threshold: float
    progress: float = Field(ge=0, le=100, description="Percent of the mint threshold reached")
    mint_eligible: bool
    tradable_amount: int
    reserved_amount: int = Field(description="Non-permanence buffer pool")


class OnChainCredits(BaseModel):
    """Credit counters read back from the project contract."""

    total_issued: float
    buffer: float
    carbon_balance: float


# ── Oracle ──────────────────────────────────────────────────────────────────


class RequestState(StrEnum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({RequestState.FULFILLED, RequestState.FAILED, RequestState.TIMED_OUT})


class OracleRequest(BaseModel):
    """One off-chain computation request and where it is in its lifecycle."""

    project_id: str
    coordinate: Coordinate
    parameters: ProjectParameters
    submitted_at: datetime
    state: RequestState = RequestState.SUBMITTED
    tx_hash: str | None = None
    request_id: str | None = None
    result: CarbonAssessment | None = None
    error: str | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


# ── API payloads ────────────────────────────────────────────────────────────


class AssessmentRequest(BaseModel):
    coordinate: Coordinate
    parameters: ProjectParameters
    mode: AssessmentMode = "balance"
    period: OffsetPeriod | None = None
    strict: bool = Field(default=False, description="Reject out-of-range inputs instead of scoring them")


class AssessmentResponse(BaseModel):
    assessment: CarbonAssessment | StockAssessment | OffsetAssessment = Field(discriminator="mode")
    provenance: dict[str, str]


class IssuanceRequest(BaseModel):
    current: float = Field(description="Carbon accrued so far (tCO2e)")
    threshold: float | None = None


class OracleSubmission(BaseModel):
    coordinate: Coordinate
    parameters: ProjectParameters


class ValidationReport(BaseModel):
    valid: bool
    violations: list[RangeViolation]
    provenance: dict[str, str]
