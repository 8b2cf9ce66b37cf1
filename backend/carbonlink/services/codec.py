"""ABI encoding for oracle request arguments and fulfillment payloads.

On-chain values are fixed-point integers with three decimal places
(``value * SCALE``), so a decoded assessment matches the original to 1e-3.
"""

from eth_abi import decode, encode

from carbonlink.schemas.carbon import (
    CarbonAssessment,
    EmissionsBreakdown,
    ProjectParameters,
    SequestrationBreakdown,
)
from carbonlink.schemas.observations import Coordinate

SCALE = 1000
PRECISION = 1 / SCALE

# Field order of the fulfillment payload
ASSESSMENT_FIELDS = (
    "biomass_growth",
    "soil_carbon",
    "total_sequestration",
    "baseline_emissions",
    "project_emissions",
    "leakage",
    "total_emissions",
    "net_carbon_balance",
    "total_project_carbon",
    "confidence",
    "uncertainty",
)
_ASSESSMENT_TYPE = f"int256[{len(ASSESSMENT_FIELDS)}]"


def to_fixed(value: float) -> int:
    return round(value * SCALE)


def from_fixed(value: int) -> float:
    return value / SCALE


def encode_request_args(coordinate: Coordinate, params: ProjectParameters) -> bytes:
    """ABI ``string[]`` of the computation arguments, in the order the oracle source reads them."""
    args = [
        str(coordinate.latitude),
        str(coordinate.longitude),
        str(coordinate.elevation if coordinate.elevation is not None else 0),
        str(params.area),
        str(params.duration),
        params.baseline_scenario.value,
        params.project_type.value,
    ]
    return encode(["string[]"], [args])


def decode_request_args(data: bytes) -> tuple[Coordinate, ProjectParameters]:
    (args,) = decode(["string[]"], data)
    lat, lon, elevation, area, duration, baseline, project_type = args
    coordinate = Coordinate(latitude=float(lat), longitude=float(lon), elevation=float(elevation))
    params = ProjectParameters(
        area=float(area),
        duration=float(duration),
        baseline_scenario=baseline,
        project_type=project_type,
    )
    return coordinate, params


def encode_assessment(assessment: CarbonAssessment) -> bytes:
    values = [
        assessment.sequestration.biomass_growth,
        assessment.sequestration.soil_carbon,
        assessment.sequestration.total,
        assessment.emissions.baseline,
        assessment.emissions.project,
        assessment.emissions.leakage,
        assessment.emissions.total,
        assessment.net_carbon_balance,
        assessment.total_project_carbon,
        assessment.confidence,
        assessment.uncertainty,
    ]
    return encode([_ASSESSMENT_TYPE], [[to_fixed(v) for v in values]])


def decode_assessment(data: bytes) -> CarbonAssessment:
    (raw,) = decode([_ASSESSMENT_TYPE], data)
    v = dict(zip(ASSESSMENT_FIELDS, (from_fixed(x) for x in raw), strict=True))
    return CarbonAssessment(
        sequestration=SequestrationBreakdown(
            biomass_growth=v["biomass_growth"],
            soil_carbon=v["soil_carbon"],
            total=v["total_sequestration"],
        ),
        emissions=EmissionsBreakdown(
            baseline=v["baseline_emissions"],
            project=v["project_emissions"],
            leakage=v["leakage"],
            total=v["total_emissions"],
        ),
        net_carbon_balance=v["net_carbon_balance"],
        total_project_carbon=v["total_project_carbon"],
        confidence=v["confidence"],
        uncertainty=v["uncertainty"],
    )


def decode_error(data: bytes) -> str | None:
    """Error marker of a fulfillment: ``None`` when empty, else its UTF-8 text."""
    if not data:
        return None
    return data.decode("utf-8", errors="replace")
