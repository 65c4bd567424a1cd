"""
Weather advisory adapter used to suggest indoor or outdoor seating.

The lookup never raises: any failure (missing credential, network error,
non-200 status, malformed payload) degrades to WEATHER_UNAVAILABLE so the
conversation carries on without the advisory.
"""

import logging
import re
from typing import Optional, Protocol

import httpx

from bistro_agent.config import WeatherConfig, settings

logger = logging.getLogger(__name__)

WEATHER_UNAVAILABLE = "Weather unavailable."

_OUTDOOR_CONDITIONS = frozenset({"clear", "clouds"})
_ADVISORY_RE = re.compile(r":\s*(?P<main>[A-Za-z ]+),\s*(?P<temp>-?\d+(\.\d+)?)\s*°C")


class WeatherUnavailableError(Exception):
    """Internal signal that the forecast provider gave no usable answer."""


class WeatherAdvisory(Protocol):
    """Stateless location -> advisory lookup."""

    async def lookup(self, location: str) -> str: ...


class OpenWeatherAdvisory:
    """Current-conditions lookup against the OpenWeatherMap API."""

    def __init__(
        self,
        config: Optional[WeatherConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or settings.weather
        self._client = client

    async def lookup(self, location: str) -> str:
        """Return ``"Weather in <location>: <Main>, <temp>°C."`` or the sentinel."""
        logger.info("Checking weather for %s", location)
        try:
            data = await self._fetch(location)
            return f"Weather in {location}: {data['weather'][0]['main']}, {data['main']['temp']}°C."
        except WeatherUnavailableError as exc:
            logger.warning("Weather lookup failed for %s: %s", location, exc)
        except (KeyError, IndexError, TypeError) as exc:
            logger.warning("Malformed weather payload for %s: %r", location, exc)
        return WEATHER_UNAVAILABLE

    async def _fetch(self, location: str) -> dict:
        if not location.strip():
            raise WeatherUnavailableError("no location given")
        if not self._config.api_key:
            raise WeatherUnavailableError("WEATHER_API_KEY is not set")

        params = {"q": location, "appid": self._config.api_key, "units": "metric"}
        try:
            if self._client is not None:
                resp = await self._client.get(self._config.api_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_sec) as client:
                    resp = await client.get(self._config.api_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise WeatherUnavailableError(f"status {exc.response.status_code}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise WeatherUnavailableError(f"transport error: {exc}") from exc
        except ValueError as exc:
            raise WeatherUnavailableError("response is not JSON") from exc

        if not isinstance(data, dict):
            raise WeatherUnavailableError("payload is not an object")
        if str(data.get("cod")) != "200":
            raise WeatherUnavailableError(f"provider returned cod={data.get('cod')!r}")
        return data


def suggest_seating(advisory: str, min_outdoor_temp: Optional[float] = None) -> Optional[str]:
    """
    Map an advisory to a seating suggestion.

    Returns:
        "Outdoor" for clear or cloudy weather at or above the threshold,
        "Indoor" otherwise, or None when the advisory carries no reading.
    """
    if advisory == WEATHER_UNAVAILABLE:
        return None
    match = _ADVISORY_RE.search(advisory)
    if not match:
        return None
    threshold = settings.weather.outdoor_min_temp_c if min_outdoor_temp is None else min_outdoor_temp
    condition = match.group("main").strip().lower()
    temp = float(match.group("temp"))
    if condition in _OUTDOOR_CONDITIONS and temp >= threshold:
        return "Outdoor"
    return "Indoor"
