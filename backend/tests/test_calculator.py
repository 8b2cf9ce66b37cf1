"""Tests for the carbon offset calculator: stock, offset and balance modes."""

from datetime import date

import pytest

from carbonlink.core.errors import MissingInputError, ValidationError
from carbonlink.schemas.carbon import (
    BaselineScenario,
    CarbonAssessment,
    OffsetAssessment,
    OffsetPeriod,
    ProjectParameters,
    ProjectType,
    StockAssessment,
)
from carbonlink.schemas.observations import Observations, SyntheticSource
from carbonlink.services import calculator
from tests.conftest import make_observations


@pytest.fixture
def scenario_a() -> Observations:
    return make_observations(
        weather={"temperature": 22.0},
        satellite={"ndvi": 0.6, "cloud_cover": 10.0, "forest_health": 0.9},
        soil={"moisture": 65.0},
    )


# ── Scoring primitives ──────────────────────────────────────────────────────


def test_carbon_density_at_zero_is_regression_intercept() -> None:
    assert calculator.carbon_density(0.0) == pytest.approx(2.5)


def test_carbon_density_strictly_increasing() -> None:
    values = [calculator.carbon_density(i / 20) for i in range(21)]
    assert all(b > a for a, b in zip(values, values[1:], strict=False))


@pytest.mark.parametrize(
    "cloud_cover,forest_health,temperature,soil_moisture",
    [
        (0, 1.0, 20, 0.7),
        (100, 0.0, -40, 2.0),
        (60, 0.2, 50, 0.1),
        (25, 1.0, 20, 0.65),
        (-10, 5.0, 20, 0.7),
    ],
)
def test_confidence_factor_bounded(
    cloud_cover: float, forest_health: float, temperature: float, soil_moisture: float
) -> None:
    value = calculator.confidence_factor(cloud_cover, forest_health, temperature, soil_moisture)
    assert 0.5 <= value <= 1.0


@pytest.mark.parametrize(
    "cloud_cover,soil_moisture,temperature,ndvi",
    [
        (0, 0.5, 20, 0.5),
        (100, 0.5, 20, 0.5),
        (0, -1, 100, 2),
        (200, 5, -100, -1),
    ],
)
def test_uncertainty_bounded(cloud_cover: float, soil_moisture: float, temperature: float, ndvi: float) -> None:
    value = calculator.uncertainty(cloud_cover, soil_moisture, temperature, ndvi)
    assert 10 <= value <= 100


def test_uncertainty_for_clean_data() -> None:
    # 1 - 1.0 * 0.85 * 1.0 = 15%, above the 10% floor
    assert calculator.uncertainty(0, 0.5, 20, 0.5) == pytest.approx(15.0)


def test_sensor_reliability_penalties_floor_at_half() -> None:
    assert calculator.sensor_reliability(0.5, 20, 0.5) == 1.0
    assert calculator.sensor_reliability(1.5, 20, 0.5) == pytest.approx(0.7)
    assert calculator.sensor_reliability(1.5, 100, 2.0) == 0.5


def test_performance_benchmark_ratio() -> None:
    assert calculator.performance_benchmark(0.7, 0.55, 0.5, 0.5) == pytest.approx(4.0)


def test_performance_benchmark_zero_control_change_is_neutral() -> None:
    assert calculator.performance_benchmark(0.7, 0.5, 0.5, 0.5) == 1.0


# ── Stock mode ──────────────────────────────────────────────────────────────


def test_stock_scenario_a(scenario_a: Observations) -> None:
    result = calculator.compute_stock(scenario_a, area=100)

    assert isinstance(result, StockAssessment)
    assert result.carbon_density == pytest.approx(17.0524, rel=1e-4)
    assert result.confidence_factor == pytest.approx(0.945)
    assert result.carbon_stock == pytest.approx(1611.45, rel=1e-3)
    assert result.co2_equivalent == pytest.approx(5907, rel=1e-3)
    assert result.credit_basis == result.co2_equivalent


def test_stock_breakdown_sums_to_stock(scenario_a: Observations) -> None:
    result = calculator.compute_stock(scenario_a, area=100)
    b = result.breakdown
    assert b.biomass + b.soil + b.environmental == pytest.approx(result.carbon_stock)
    assert b.biomass == pytest.approx(result.carbon_stock * 0.76)


def test_stock_negative_area_clamps_to_zero(scenario_a: Observations) -> None:
    result = calculator.compute_stock(scenario_a, area=-5)
    assert result.carbon_stock == 0.0
    assert result.co2_equivalent == 0.0


# ── Offset mode ─────────────────────────────────────────────────────────────


def test_offset_scenario_b(observations: Observations) -> None:
    period = OffsetPeriod(
        ndvi_start=0.5,
        ndvi_end=0.6,
        start_date=date(2023, 1, 1),
        end_date=date(2024, 1, 1),
    )

    result = calculator.compute_offset(observations, area=50, period=period)

    assert isinstance(result, OffsetAssessment)
    assert result.breakdown.carbon_density_start == pytest.approx(12.38, abs=0.01)
    assert result.breakdown.carbon_density_end == pytest.approx(17.05, abs=0.01)
    assert result.carbon_stock_change == pytest.approx(233.5, abs=0.1)
    assert result.breakdown.ndvi_change == pytest.approx(0.1)
    assert result.start_date == date(2023, 1, 1)
    assert result.end_date == date(2024, 1, 1)


def test_offset_loss_credits_nothing(observations: Observations) -> None:
    period = OffsetPeriod(ndvi_start=0.6, ndvi_end=0.5)
    result = calculator.compute_offset(observations, area=50, period=period)
    assert result.carbon_stock_change < 0
    assert result.co2_equivalent == 0.0


def test_offset_zero_ndvi_is_a_valid_endpoint(observations: Observations) -> None:
    period = OffsetPeriod(ndvi_start=0.0, ndvi_end=0.5)
    result = calculator.compute_offset(observations, area=10, period=period)
    assert result.breakdown.carbon_density_start == pytest.approx(2.5)


@pytest.mark.parametrize(
    "period",
    [None, OffsetPeriod(ndvi_start=0.5), OffsetPeriod(ndvi_end=0.6), OffsetPeriod()],
)
def test_offset_missing_endpoint_raises(observations: Observations, period: OffsetPeriod | None) -> None:
    with pytest.raises(MissingInputError) as exc_info:
        calculator.compute_offset(observations, area=50, period=period)
    assert exc_info.value.stage == "computation"


# ── Balance mode ────────────────────────────────────────────────────────────


def test_balance_with_neutral_factors(observations: Observations) -> None:
    params = ProjectParameters(area=10, duration=2)

    result = calculator.compute_balance(observations, params)

    assert isinstance(result, CarbonAssessment)
    assert result.sequestration.biomass_growth == pytest.approx(8.5 * 0.47 * 3.67)
    assert result.sequestration.soil_carbon == pytest.approx(1.835)
    assert result.emissions.baseline == pytest.approx(2.0)
    assert result.emissions.project == pytest.approx(1.5)
    assert result.emissions.leakage == pytest.approx(0.2)
    assert result.net_carbon_balance == pytest.approx(12.79665)
    assert result.total_project_carbon == pytest.approx(255.933)
    assert result.confidence == pytest.approx(0.95)
    assert result.uncertainty == pytest.approx(5.0)


def test_balance_deforestation_baseline_raises_leakage(observations: Observations) -> None:
    params = ProjectParameters(
        area=10,
        duration=1,
        project_type=ProjectType.FOREST_CONSERVATION,
        baseline_scenario=BaselineScenario.DEFORESTATION,
    )
    result = calculator.compute_balance(observations, params)
    assert result.emissions.baseline == pytest.approx(15.0)
    assert result.emissions.leakage == pytest.approx(15.0 * 0.45)


def test_balance_fire_risk_and_hot_windy_weather_raise_emissions() -> None:
    data = make_observations(
        weather={"temperature": 32.0, "wind_speed": 9.0},
        fire={"fire_risk": 0.5},
    )
    result = calculator.compute_balance(data, ProjectParameters(area=1, duration=1))
    assert result.emissions.baseline == pytest.approx(4.0)
    assert result.emissions.project == pytest.approx(1.5 * 1.3)


def test_balance_confidence_drops_for_out_of_range_domains() -> None:
    data = make_observations(satellite={"ndvi": 1.4}, soil={"ph": 15})
    result = calculator.compute_balance(data, ProjectParameters(area=1, duration=1))
    assert result.confidence == pytest.approx(0.7 + 0.1 + 0.05)


# ── Validation and dispatch ─────────────────────────────────────────────────


def test_validate_clean_inputs(observations: Observations) -> None:
    assert calculator.validate(observations, area=10) == []


def test_validate_reports_each_violation() -> None:
    data = make_observations(satellite={"ndvi": 1.2, "cloud_cover": 120}, soil={"moisture": 150})
    violations = calculator.validate(data, area=0)
    assert {v.field for v in violations} == {"ndvi", "area", "soil_moisture", "cloud_cover"}


def test_ensure_valid_raises_with_violations() -> None:
    data = make_observations(satellite={"ndvi": -0.1})
    with pytest.raises(ValidationError) as exc_info:
        calculator.ensure_valid(data, area=10)
    payload = exc_info.value.to_dict()
    assert payload["stage"] == "validation"
    assert payload["violations"][0]["field"] == "ndvi"


@pytest.mark.parametrize(
    "mode,expected",
    [("balance", CarbonAssessment), ("stock", StockAssessment), ("offset", OffsetAssessment)],
)
def test_compute_assessment_dispatches_by_mode(observations: Observations, mode: str, expected: type) -> None:
    period = OffsetPeriod(ndvi_start=0.4, ndvi_end=0.5)
    result = calculator.compute_assessment(
        observations, ProjectParameters(area=10, duration=1), mode=mode, period=period
    )
    assert isinstance(result, expected)
    assert result.mode == mode


def test_compute_assessment_unknown_mode(observations: Observations) -> None:
    with pytest.raises(ValueError):
        calculator.compute_assessment(observations, ProjectParameters(area=1, duration=1), mode="flux")


def test_synthetic_source_does_not_change_scoring(observations: Observations) -> None:
    satellite = observations.satellite.model_copy(update={"source": SyntheticSource(reason="offline")})
    synthetic = observations.model_copy(update={"satellite": satellite})
    params = ProjectParameters(area=10, duration=2)
    assert calculator.compute_balance(synthetic, params) == calculator.compute_balance(observations, params)
