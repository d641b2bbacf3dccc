"""Current weather for the header widget (OpenWeatherMap)."""

from __future__ import annotations

import logging

from morningstack.ingest.fetcher import SourceAPI, SourceConfig
from morningstack.ingest.scorer import round_half_up
from morningstack.models import WeatherData

logger = logging.getLogger(__name__)

OWM_URL = "https://api.openweathermap.org/data/2.5/weather"


async def load_weather(api: SourceAPI, config) -> WeatherData:
    data = await api.get_json(
        OWM_URL,
        params={"q": config.weather_city, "units": "metric", "appid": config.openweathermap_api_key},
    )
    primary = (data.get("weather") or [{}])[0]
    weather = WeatherData(
        city=data.get("name") or config.weather_city,
        temperature_celsius=round_half_up(data["main"]["temp"]),
        condition=primary.get("main", "Unknown"),
        icon_code=primary.get("icon", "01d"),
    )
    logger.info("Fetched weather for %s: %s", weather.city, weather.condition)
    return weather


CONFIG = SourceConfig(
    name="weather",
    load=load_weather,
    ttl=30 * 60,
    limit=None,
    credential="openweathermap_api_key",
)
