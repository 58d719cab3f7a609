# backend/farmbot/tools/weather.py
import time
import logging

from farmbot.http import get_http_client
from farmbot.models.domain import WeatherSnapshot

log = logging.getLogger("farmbot.weather")

def t(): return time.perf_counter()

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather interpretation codes used by Open-Meteo
WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snowfall",
    73: "Moderate snowfall",
    75: "Heavy snowfall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

def describe(code) -> str:
    try:
        return WEATHER_CODES.get(int(code), "Unknown weather")
    except (TypeError, ValueError):
        return "Unknown weather"

async def current_conditions(lat: float, lon: float, tz: str = "auto") -> WeatherSnapshot:
    """Current temperature / humidity / wind at a point (no API key needed)."""
    start = t()
    params = {
        "latitude": lat,
        "longitude": lon,
        "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m,precipitation",
        "timezone": tz,
        "temperature_unit": "celsius",
        "windspeed_unit": "kmh",
    }
    client = get_http_client()
    r = await client.get(OPEN_METEO_URL, params=params)
    r.raise_for_status()
    cur = (r.json() or {}).get("current") or {}
    if cur.get("temperature_2m") is None or cur.get("relative_humidity_2m") is None:
        raise ValueError("open-meteo: response has no current conditions")

    snap = WeatherSnapshot(
        temperature=float(cur["temperature_2m"]),
        humidity=float(cur["relative_humidity_2m"]),
        description=describe(cur.get("weather_code")),
        wind_speed=float(cur.get("wind_speed_10m") or 0.0),
        precipitation=float(cur.get("precipitation") or 0.0),
        source="Open-Meteo",
    )
    log.info("⏱️  Weather now: %dms (%s, %.0f°C)", round((t() - start) * 1000), snap.description, snap.temperature)
    return snap
