"""HTTP clients for the upstream environmental data providers.

Each provider returns only the fields it could actually read, keyed by the
observation field name. Anything else (missing credentials, non-2xx
responses, malformed bodies) is raised as ``ProviderError`` so the
aggregator can substitute synthetic data.
"""

import io
import logging
from datetime import UTC, datetime, timedelta

import httpx
import pandas as pd

from carbonlink.core.config import Settings
from carbonlink.core.errors import ProviderError
from carbonlink.schemas.observations import Coordinate

logger = logging.getLogger(__name__)


class Provider:
    """Base class: one upstream source for one observation domain."""

    domain: str = ""
    provider_id: str = ""

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        raise NotImplementedError

    def _fail(self, reason: str) -> ProviderError:
        return ProviderError(self.domain, self.provider_id, reason)

    def _json(self, response: httpx.Response) -> dict:
        if response.is_error:
            raise self._fail(f"HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise self._fail("response body is not JSON") from exc
        if not isinstance(body, dict):
            raise self._fail("unexpected response shape")
        return body


# ── Weather ─────────────────────────────────────────────────────────────────


class OpenWeatherProvider(Provider):
    domain = "weather"
    provider_id = "openweather"

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        api_key = self._settings.openweather_api_key
        if not api_key:
            raise self._fail("API key not configured")

        response = await self._client.get(
            self._settings.openweather_url,
            params={
                "lat": coordinate.latitude,
                "lon": coordinate.longitude,
                "appid": api_key,
                "units": "metric",
            },
        )
        body = self._json(response)
        try:
            return {
                "temperature": float(body["main"]["temp"]),
                "humidity": float(body["main"]["humidity"]),
                "rainfall": float((body.get("rain") or {}).get("1h", 0.0)),
                "wind_speed": float(body["wind"]["speed"]),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise self._fail(f"malformed weather payload: {exc!r}") from exc


# ── Vegetation index ────────────────────────────────────────────────────────

# Sentinel-2 L2A: NDVI, EVI and a cloud mask from the scene classification
# layer (SCL 3 = cloud shadow, 8/9 = cloud, 10 = cirrus).
_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B02", "B04", "B08", "SCL", "dataMask"] }],
    output: [
      { id: "ndvi", bands: 1, sampleType: "FLOAT32" },
      { id: "evi", bands: 1, sampleType: "FLOAT32" },
      { id: "clouds", bands: 1, sampleType: "FLOAT32" },
      { id: "dataMask", bands: 1 }
    ]
  };
}
function evaluatePixel(s) {
  let ndvi = (s.B08 - s.B04) / (s.B08 + s.B04);
  let evi = 2.5 * (s.B08 - s.B04) / (s.B08 + 6 * s.B04 - 7.5 * s.B02 + 1);
  let cloudy = [3, 8, 9, 10].includes(s.SCL) ? 1 : 0;
  return { ndvi: [ndvi], evi: [evi], clouds: [cloudy], dataMask: [s.dataMask] };
}
"""


class SentinelHubProvider(Provider):
    domain = "satellite"
    provider_id = "sentinel-hub"

    bbox_half_width = 0.001  # degrees
    lookback_days = 30

    async def _access_token(self) -> str:
        client_id = self._settings.sentinel_client_id
        client_secret = self._settings.sentinel_client_secret
        if not client_id or not client_secret:
            raise self._fail("OAuth credentials not configured")

        response = await self._client.post(
            self._settings.sentinel_token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if response.status_code in (401, 403):
            raise self._fail("authentication rejected")
        token = self._json(response).get("access_token")
        if not token:
            raise self._fail("token response missing access_token")
        return token

    def _statistics_request(self, coordinate: Coordinate) -> dict:
        lat, lon = coordinate.latitude, coordinate.longitude
        w = self.bbox_half_width
        end = datetime.now(UTC)
        start = end - timedelta(days=self.lookback_days)
        return {
            "input": {
                "bounds": {
                    "bbox": [lon - w, lat - w, lon + w, lat + w],
                    "properties": {"crs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84"},
                },
                "data": [{"type": "sentinel-2-l2a", "dataFilter": {"mosaickingOrder": "leastCC"}}],
            },
            "aggregation": {
                "timeRange": {"from": start.isoformat(), "to": end.isoformat()},
                "aggregationInterval": {"of": f"P{self.lookback_days}D"},
                "resx": 10,
                "resy": 10,
                "evalscript": _EVALSCRIPT,
            },
        }

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        token = await self._access_token()
        response = await self._client.post(
            self._settings.sentinel_statistics_url,
            headers={"Authorization": f"Bearer {token}"},
            json=self._statistics_request(coordinate),
        )
        body = self._json(response)
        intervals = body.get("data") or []
        if not isinstance(intervals, list) or not intervals:
            raise self._fail("statistics response has no aggregate")
        latest = intervals[-1]
        if not isinstance(latest, dict):
            raise self._fail("unexpected aggregate shape")
        outputs = latest.get("outputs") or {}
        try:
            return {
                "ndvi": _band_mean(outputs, "ndvi"),
                "evi": _band_mean(outputs, "evi"),
                "cloud_cover": _band_mean(outputs, "clouds") * 100,
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise self._fail(f"missing statistic: {exc!r}") from exc


def _band_mean(outputs: dict, output_id: str) -> float:
    mean = outputs[output_id]["bands"]["B0"]["stats"]["mean"]
    if mean is None or mean != mean:  # NaN when every pixel was masked
        raise ValueError(f"{output_id} mean unavailable")
    return float(mean)


# ── Soil ────────────────────────────────────────────────────────────────────


class CopernicusSoilProvider(Provider):
    """Copernicus Land catalog search.

    The catalog only lists datasets; live soil values are not parsed from it,
    so a successful search still reports the provider as unavailable.
    """

    domain = "soil"
    provider_id = "copernicus-land"

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        token = self._settings.copernicus_access_token
        if not token:
            raise self._fail("access token not configured")

        response = await self._client.get(
            self._settings.copernicus_search_url,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            params={
                "portal_type": "DataSet",
                "metadata_fields": "UID",
                "SearchableText": "soil moisture",
            },
        )
        body = self._json(response)
        logger.debug(f"Copernicus catalog lists {len(body.get('items') or [])} soil datasets")
        raise self._fail("live soil values are not parsed from the catalog")


# ── Fire ────────────────────────────────────────────────────────────────────


class NasaFirmsProvider(Provider):
    domain = "fire"
    provider_id = "nasa-firms"

    bbox_half_width = 0.05  # degrees
    sensor = "MODIS_NRT"
    day_range = 1
    hectares_per_fire = 0.5

    async def fetch(self, coordinate: Coordinate) -> dict[str, float]:
        api_key = self._settings.nasa_firms_api_key
        if not api_key:
            raise self._fail("API key not configured")

        lat, lon = coordinate.latitude, coordinate.longitude
        w = self.bbox_half_width
        area = f"{lon - w:.4f},{lat - w:.4f},{lon + w:.4f},{lat + w:.4f}"
        url = f"{self._settings.nasa_firms_url}/{api_key}/{self.sensor}/{area}/{self.day_range}"

        response = await self._client.get(url)
        if response.is_error:
            raise self._fail(f"HTTP {response.status_code}")

        try:
            df = pd.read_csv(io.StringIO(response.text))
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise self._fail("unreadable CSV") from exc
        # Error responses come back as a single plain-text line
        if "latitude" not in df.columns:
            raise self._fail("CSV has no detection columns")

        active_fires = len(df)
        return {
            "fire_risk": 0.8 if active_fires > 0 else 0.1,
            "active_fires": active_fires,
            "burned_area": active_fires * self.hectares_per_fire,
        }


def default_providers(client: httpx.AsyncClient, settings: Settings) -> dict[str, Provider]:
    """One provider per observation domain."""
    providers: list[Provider] = [
        OpenWeatherProvider(client, settings),
        SentinelHubProvider(client, settings),
        CopernicusSoilProvider(client, settings),
        NasaFirmsProvider(client, settings),
    ]
    return {p.domain: p for p in providers}
