"""Carbon offset calculation pipeline.

Three modes share the same scoring primitives:

- stock:   carbon density from an NDVI regression, scaled by area and a
           data-quality confidence factor.
- offset:  the same regression evaluated at two NDVI endpoints; the stock
           change is credited.
- balance: sequestration (biomass growth + soil carbon) minus emissions
           (baseline + project + leakage), per hectare per year.

Formulas:
- Carbon density:  D = a * e^(b * NDVI)                      [tC/ha]
- Carbon stock:    S = D * area * confidence_factor          [tC]
- CO2 equivalent:  S * 44/12                                 [tCO2]
- Uncertainty:     (1 - data_quality * api_confidence * sensor_reliability) * 100, in [10, 100]

Everything here is a pure function of its inputs and a frozen
``CalculatorConfig``. Nothing validates automatically: call ``validate``
(or ``ensure_valid``) first, or accept best-effort clamped output.
"""

import math
from dataclasses import dataclass, field

from carbonlink.core.errors import MissingInputError, ValidationError
from carbonlink.schemas.carbon import (
    Assessment,
    AssessmentMode,
    BaselineScenario,
    CarbonAssessment,
    EmissionsBreakdown,
    OffsetAssessment,
    OffsetBreakdown,
    OffsetPeriod,
    ProjectParameters,
    ProjectType,
    SequestrationBreakdown,
    StockAssessment,
    StockBreakdown,
)
from carbonlink.schemas.observations import (
    FireObservation,
    Observations,
    RangeViolation,
    SatelliteObservation,
    SoilObservation,
    WeatherObservation,
    check_range,
)


@dataclass(frozen=True)
class CalculatorConfig:
    """Regression coefficients and accounting constants."""

    # NDVI → carbon density regression
    ndvi_a: float = 2.5
    ndvi_b: float = 3.2

    carbon_to_co2_ratio: float = 44 / 12
    biomass_to_carbon: float = 0.47
    carbon_to_co2: float = 3.67  # rounded ratio used by the balance model

    min_uncertainty: float = 0.10
    api_confidence: float = 0.85

    biomass_ratio: float = 0.76  # above-ground share of stock
    soil_ratio: float = 0.24

    temperature_optimum: float = 25.0  # °C
    rainfall_optimum: float = 1500.0  # mm/yr
    ph_optimum: float = 6.5
    soil_base_sequestration: float = 0.5  # tC/ha/yr

    growth_rates: dict[str, float] = field(
        default_factory=lambda: {
            ProjectType.REFORESTATION: 8.5,
            ProjectType.AFFORESTATION: 12.0,
            ProjectType.FOREST_CONSERVATION: 6.0,
            ProjectType.AGROFORESTRY: 4.5,
        }
    )
    default_growth_rate: float = 8.0

    baseline_rates: dict[str, float] = field(
        default_factory=lambda: {
            BaselineScenario.BUSINESS_AS_USUAL: 2.0,
            BaselineScenario.DEFORESTATION: 15.0,
            BaselineScenario.DEGRADATION: 8.0,
        }
    )
    default_baseline_rate: float = 5.0

    project_emission_rates: dict[str, float] = field(
        default_factory=lambda: {
            ProjectType.REFORESTATION: 1.5,
            ProjectType.AFFORESTATION: 2.0,
            ProjectType.FOREST_CONSERVATION: 0.5,
            ProjectType.AGROFORESTRY: 3.0,
        }
    )
    default_project_emission_rate: float = 1.0


DEFAULT_CONFIG = CalculatorConfig()


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ── Shared scoring primitives ───────────────────────────────────────────────


def carbon_density(ndvi: float, config: CalculatorConfig = DEFAULT_CONFIG) -> float:
    """Carbon density (tC/ha) from NDVI: a * e^(b * ndvi)."""
    return config.ndvi_a * math.exp(config.ndvi_b * ndvi)


def confidence_factor(
    cloud_cover: float,
    forest_health: float,
    temperature: float,
    soil_moisture: float,
) -> float:
    """Data-quality multiplier in [0.5, 1.0]. ``soil_moisture`` is a fraction."""
    confidence = 1.0

    if cloud_cover > 50:
        confidence *= 0.8
    elif cloud_cover > 20:
        confidence *= 0.9

    confidence *= forest_health

    if temperature < -10 or temperature > 40:
        confidence *= 0.85

    if 0.6 <= soil_moisture <= 0.8:
        confidence *= 1.05
    elif soil_moisture < 0.4 or soil_moisture > 0.9:
        confidence *= 0.9

    return _clamp(confidence, 0.5, 1.0)


def sensor_reliability(soil_moisture: float, temperature: float, ndvi: float) -> float:
    """Penalise readings that look like sensor faults. Floored at 0.5."""
    reliability = 1.0
    if soil_moisture < 0 or soil_moisture > 1:
        reliability *= 0.7
    if temperature < -50 or temperature > 60:
        reliability *= 0.8
    if ndvi < 0 or ndvi > 1:
        reliability *= 0.6
    return max(0.5, reliability)


def uncertainty(
    cloud_cover: float,
    soil_moisture: float,
    temperature: float,
    ndvi: float,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> float:
    """Uncertainty percentage in [min_uncertainty * 100, 100]."""
    data_quality = 1 - cloud_cover / 100
    reliability = sensor_reliability(soil_moisture, temperature, ndvi)
    value = (1 - data_quality * config.api_confidence * reliability) * 100
    return _clamp(value, config.min_uncertainty * 100, 100.0)


def stock_breakdown(carbon_stock: float, config: CalculatorConfig = DEFAULT_CONFIG) -> StockBreakdown:
    biomass = carbon_stock * config.biomass_ratio
    soil = carbon_stock * config.soil_ratio
    environmental = carbon_stock * round(1 - config.biomass_ratio - config.soil_ratio, 10)
    return StockBreakdown(
        biomass=max(0.0, biomass),
        soil=max(0.0, soil),
        environmental=max(0.0, environmental),
    )


def performance_benchmark(
    project_ndvi: float,
    control_ndvi: float,
    project_ndvi_previous: float,
    control_ndvi_previous: float,
) -> float:
    """Ratio of project NDVI change to control-area NDVI change.

    A control area with no change gives a neutral 1.0 instead of dividing by zero.
    """
    project_change = project_ndvi - project_ndvi_previous
    control_change = control_ndvi - control_ndvi_previous
    if control_change == 0:
        return 1.0
    return project_change / control_change


def _quality_inputs(observations: Observations) -> dict[str, float]:
    return {
        "cloud_cover": observations.satellite.cloud_cover,
        "soil_moisture": observations.soil.moisture_fraction,
        "temperature": observations.weather.temperature,
    }


# ── Validation ──────────────────────────────────────────────────────────────


def validate(observations: Observations, area: float) -> list[RangeViolation]:
    """Return every out-of-range input relevant to the calculator (empty when valid)."""
    violations: list[RangeViolation] = []
    check_range(violations, "ndvi", observations.satellite.ndvi, 0, 1)
    check_range(violations, "area", area, 0, exclusive_min=True)
    check_range(violations, "soil_moisture", observations.soil.moisture_fraction, 0, 1)
    check_range(violations, "cloud_cover", observations.satellite.cloud_cover, 0, 100)
    return violations


def ensure_valid(observations: Observations, area: float) -> None:
    violations = validate(observations, area)
    if violations:
        raise ValidationError(
            violations,
            context={
                "latitude": observations.coordinate.latitude,
                "longitude": observations.coordinate.longitude,
                "area": area,
            },
        )


# ── Stock mode ──────────────────────────────────────────────────────────────


def compute_stock(
    observations: Observations, area: float, config: CalculatorConfig = DEFAULT_CONFIG
) -> StockAssessment:
    ndvi = observations.satellite.ndvi
    quality = _quality_inputs(observations)

    density = carbon_density(ndvi, config)
    factor = confidence_factor(
        cloud_cover=quality["cloud_cover"],
        forest_health=observations.satellite.forest_health,
        temperature=quality["temperature"],
        soil_moisture=quality["soil_moisture"],
    )
    stock = max(0.0, density * area * factor)

    return StockAssessment(
        carbon_density=density,
        carbon_stock=stock,
        co2_equivalent=max(0.0, stock * config.carbon_to_co2_ratio),
        confidence_factor=factor,
        uncertainty=uncertainty(ndvi=ndvi, config=config, **quality),
        breakdown=stock_breakdown(stock, config),
    )


# ── Offset mode ─────────────────────────────────────────────────────────────


def compute_offset(
    observations: Observations,
    area: float,
    period: OffsetPeriod | None,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> OffsetAssessment:
    if period is None or period.ndvi_start is None or period.ndvi_end is None:
        raise MissingInputError(
            "Both start and end NDVI values are required for an offset calculation",
            context={"period": None if period is None else period.model_dump(mode="json")},
        )

    density_start = carbon_density(period.ndvi_start, config)
    density_end = carbon_density(period.ndvi_end, config)
    stock_start = density_start * area
    stock_end = density_end * area
    change = stock_end - stock_start

    quality = _quality_inputs(observations)
    factor = confidence_factor(
        cloud_cover=quality["cloud_cover"],
        forest_health=observations.satellite.forest_health,
        temperature=quality["temperature"],
        soil_moisture=quality["soil_moisture"],
    )
    adjusted_change = change * factor

    return OffsetAssessment(
        carbon_stock_start=max(0.0, stock_start),
        carbon_stock_end=max(0.0, stock_end),
        carbon_stock_change=change,
        co2_equivalent=max(0.0, adjusted_change) * config.carbon_to_co2_ratio,
        confidence_factor=factor,
        uncertainty=uncertainty(ndvi=observations.satellite.ndvi, config=config, **quality),
        breakdown=OffsetBreakdown(
            carbon_density_start=density_start,
            carbon_density_end=density_end,
            ndvi_start=period.ndvi_start,
            ndvi_end=period.ndvi_end,
            ndvi_change=period.ndvi_end - period.ndvi_start,
            project_area=area,
            confidence_factor=factor,
            carbon_to_co2_ratio=config.carbon_to_co2_ratio,
        ),
        start_date=period.start_date,
        end_date=period.end_date,
    )


# ── Balance mode ────────────────────────────────────────────────────────────


def temperature_factor(temperature: float, config: CalculatorConfig = DEFAULT_CONFIG) -> float:
    return max(0.1, 1 - abs(temperature - config.temperature_optimum) / 20)


def rainfall_factor(rainfall: float, config: CalculatorConfig = DEFAULT_CONFIG) -> float:
    return max(0.1, 1 - abs(rainfall - config.rainfall_optimum) / 2000)


def soil_fertility_factor(soil: SoilObservation) -> float:
    nitrogen = min(1.5, soil.nitrogen / 100)
    phosphorus = min(1.5, soil.phosphorus / 20)
    potassium = min(1.5, soil.potassium / 150)
    return (nitrogen + phosphorus + potassium) / 3


def ph_factor(ph: float, config: CalculatorConfig = DEFAULT_CONFIG) -> float:
    return max(0.1, 1 - abs(ph - config.ph_optimum) / 3)


def soil_temperature_factor(temperature: float) -> float:
    # Colder soils decompose organic carbon more slowly
    return _clamp(temperature / 20, 0.1, 1.5)


def moisture_factor(moisture_pct: float) -> float:
    return _clamp(moisture_pct / 40, 0.1, 1.5)


def weather_emission_factor(weather: WeatherObservation) -> float:
    factor = 1.0
    if weather.temperature > 30:
        factor += 0.2
    if weather.wind_speed > 8:
        factor += 0.1
    return factor


def biomass_growth(
    satellite: SatelliteObservation,
    weather: WeatherObservation,
    soil: SoilObservation,
    project_type: ProjectType,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> float:
    """Biomass sequestration (tCO2e/ha/yr)."""
    base = config.growth_rates.get(project_type, config.default_growth_rate)
    growth = (
        base
        * _clamp(satellite.ndvi / 0.5, 0.1, 2.0)
        * _clamp(satellite.evi / 0.3, 0.1, 2.0)
        * temperature_factor(weather.temperature, config)
        * rainfall_factor(weather.rainfall, config)
        * moisture_factor(soil.moisture)
        * soil_fertility_factor(soil)
    )
    return growth * config.biomass_to_carbon * config.carbon_to_co2


def soil_carbon_sequestration(soil: SoilObservation, config: CalculatorConfig = DEFAULT_CONFIG) -> float:
    """Soil organic carbon sequestration (tCO2e/ha/yr)."""
    sequestration = (
        config.soil_base_sequestration
        * _clamp(soil.organic_matter / 3, 0.5, 2.0)
        * ph_factor(soil.ph, config)
        * soil_temperature_factor(soil.temperature)
        * moisture_factor(soil.moisture)
    )
    return sequestration * config.carbon_to_co2


def baseline_emissions(
    scenario: BaselineScenario,
    satellite: SatelliteObservation,
    fire: FireObservation,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> float:
    """Emissions without the project (tCO2e/ha/yr)."""
    rate = config.baseline_rates.get(scenario, config.default_baseline_rate)
    fire_risk_factor = 1 + fire.fire_risk * 2
    biomass_factor = _clamp(satellite.biomass / 10000, 0.5, 2.0)
    return rate * fire_risk_factor * biomass_factor


def project_emissions(
    project_type: ProjectType, weather: WeatherObservation, config: CalculatorConfig = DEFAULT_CONFIG
) -> float:
    rate = config.project_emission_rates.get(project_type, config.default_project_emission_rate)
    return rate * weather_emission_factor(weather)


def leakage_rate(project_type: ProjectType, scenario: BaselineScenario) -> float:
    """Share of baseline emissions displaced outside the project boundary."""
    rate = 0.3 if project_type == ProjectType.FOREST_CONSERVATION else 0.1
    if scenario == BaselineScenario.DEFORESTATION:
        rate *= 1.5
    return rate


def data_confidence(observations: Observations) -> float:
    """0.7 base, raised per domain with in-range data, capped at 0.95."""
    confidence = 0.7
    if not observations.weather.range_violations():
        confidence += 0.1
    if not observations.satellite.range_violations():
        confidence += 0.1
    if not observations.soil.range_violations():
        confidence += 0.1
    if not observations.fire.range_violations():
        confidence += 0.05
    return min(0.95, confidence)


def compute_balance(
    observations: Observations,
    params: ProjectParameters,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> CarbonAssessment:
    weather, satellite, soil, fire = (
        observations.weather,
        observations.satellite,
        observations.soil,
        observations.fire,
    )

    growth = biomass_growth(satellite, weather, soil, params.project_type, config)
    soil_carbon = soil_carbon_sequestration(soil, config)
    total_sequestration = growth + soil_carbon

    baseline = baseline_emissions(params.baseline_scenario, satellite, fire, config)
    project = project_emissions(params.project_type, weather, config)
    leakage = leakage_rate(params.project_type, params.baseline_scenario) * baseline
    total_emissions = baseline + project + leakage

    net = total_sequestration - total_emissions
    confidence = data_confidence(observations)

    return CarbonAssessment(
        sequestration=SequestrationBreakdown(
            biomass_growth=growth, soil_carbon=soil_carbon, total=total_sequestration
        ),
        emissions=EmissionsBreakdown(
            baseline=baseline, project=project, leakage=leakage, total=total_emissions
        ),
        net_carbon_balance=net,
        total_project_carbon=net * params.area * params.duration,
        confidence=confidence,
        uncertainty=(1 - confidence) * 100,
    )


# ── Dispatcher ──────────────────────────────────────────────────────────────


def compute_assessment(
    observations: Observations,
    params: ProjectParameters,
    mode: AssessmentMode = "balance",
    period: OffsetPeriod | None = None,
    config: CalculatorConfig = DEFAULT_CONFIG,
) -> Assessment:
    if mode == "balance":
        return compute_balance(observations, params, config)
    if mode == "stock":
        return compute_stock(observations, params.area, config)
    if mode == "offset":
        return compute_offset(observations, params.area, period, config)
    raise ValueError(f"Unknown assessment mode: {mode}")
