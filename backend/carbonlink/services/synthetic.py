"""Range-plausible synthetic observations used when a provider is unavailable.

Ranges are biome-agnostic and deliberately conservative (low fire risk,
moderate vegetation) so substituted data never inflates an assessment.
"""

import numpy as np

# Uniform ranges per domain and field: (low, high)
WEATHER_RANGES: dict[str, tuple[float, float]] = {
    "temperature": (20.0, 30.0),  # °C
    "humidity": (60.0, 90.0),  # %
    "rainfall": (0.0, 50.0),  # mm
    "wind_speed": (0.0, 10.0),  # m/s
    "solar_radiation": (400.0, 1000.0),  # W/m²
}

SATELLITE_RANGES: dict[str, tuple[float, float]] = {
    "ndvi": (0.3, 0.7),
    "evi": (0.2, 0.5),
    "lai": (1.0, 4.0),
    "biomass": (5000.0, 20000.0),  # kg/ha
    "cloud_cover": (0.0, 30.0),  # %
    "forest_health": (0.7, 1.0),
}

SOIL_RANGES: dict[str, tuple[float, float]] = {
    "moisture": (20.0, 60.0),  # %
    "temperature": (15.0, 25.0),  # °C
    "ph": (5.5, 7.5),
    "organic_matter": (2.0, 6.0),  # %
    "nitrogen": (50.0, 150.0),  # mg/kg
    "phosphorus": (10.0, 40.0),  # mg/kg
    "potassium": (100.0, 300.0),  # mg/kg
}

FIRE_RANGES: dict[str, tuple[float, float]] = {
    "fire_risk": (0.0, 0.3),
    "burned_area": (0.0, 10.0),  # ha
}

DOMAIN_RANGES: dict[str, dict[str, tuple[float, float]]] = {
    "weather": WEATHER_RANGES,
    "satellite": SATELLITE_RANGES,
    "soil": SOIL_RANGES,
    "fire": FIRE_RANGES,
}


class SyntheticObservationGenerator:
    """Draws observation fields uniformly from ``DOMAIN_RANGES``.

    Pass a seeded ``numpy.random.Generator`` for reproducible output.
    """

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        self._rng = rng or np.random.default_rng()

    def generate(self, domain: str) -> dict[str, float]:
        if domain not in DOMAIN_RANGES:
            raise ValueError(f"Unknown observation domain: {domain}")
        fields = {
            name: round(float(self._rng.uniform(low, high)), 4)
            for name, (low, high) in DOMAIN_RANGES[domain].items()
        }
        if domain == "fire":
            fields["active_fires"] = int(self._rng.integers(0, 2))
        return fields

    def complete(self, domain: str, partial: dict[str, float]) -> tuple[dict[str, float], list[str]]:
        """Fill fields a provider did not supply. Returns the merged fields and what was filled."""
        generated = self.generate(domain)
        filled = sorted(k for k in generated if k not in partial)
        return {**generated, **partial}, filled
