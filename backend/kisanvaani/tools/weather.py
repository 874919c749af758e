# backend/kisanvaani/tools/weather.py
import datetime as dt
import logging
import time
from typing import Dict, Any, List, Optional

import httpx

from kisanvaani.config import settings
from kisanvaani.errors import UpstreamDataUnavailable

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()

FORECAST_DAYS = 5
FORECAST_SLOTS = 40  # 5 days * 8 (3-hour intervals)


def _ms_to_kmh(ms: float) -> float:
    return round((ms or 0) * 3.6, 1)


def _local_time(epoch: Optional[int], tz_offset_sec: int) -> Optional[str]:
    if not epoch:
        return None
    tz = dt.timezone(dt.timedelta(seconds=tz_offset_sec or 0))
    return dt.datetime.fromtimestamp(epoch, tz).strftime("%I:%M %p")


def _location_params(lat: Optional[float], lon: Optional[float],
                     city: Optional[str], state: Optional[str]) -> Dict[str, Any]:
    if lat is not None and lon is not None:
        return {"lat": lat, "lon": lon}
    q = ",".join(p for p in (city, state) if p)
    return {"q": f"{q},IN" if q else "IN"}


# ---------- summaries ----------
def rain_expected(forecasts: List[Dict[str, Any]]) -> bool:
    return any((f.get("rainfall") or 0) > 0 or f.get("condition") == "Rain" for f in forecasts or [])


def forecast_summary(forecasts: List[Dict[str, Any]]) -> str:
    """One line for the farmer: average temperature, then a sentence per risk flag."""
    if not forecasts:
        return ""
    avg_temp = sum((f["temp_min"] + f["temp_max"]) / 2 for f in forecasts) / len(forecasts)
    high_humidity = any((f.get("humidity") or 0) > 80 for f in forecasts)

    parts = [f"Next {len(forecasts)} days: Average temp {avg_temp:.1f}°C."]
    if rain_expected(forecasts):
        parts.append("Rain expected - plan irrigation accordingly.")
    if high_humidity:
        parts.append("High humidity - watch for fungal diseases.")
    return " ".join(parts)


# ---------- formatters ----------
def format_current_weather(raw: Dict[str, Any]) -> Dict[str, Any]:
    main = raw.get("main") or {}
    wind = raw.get("wind") or {}
    cond = (raw.get("weather") or [{}])[0]
    tz_offset = raw.get("timezone") or 0
    sys_ = raw.get("sys") or {}
    return {
        "location": raw.get("name"),
        "temperature": {
            "current": main["temp"],
            "feels_like": main.get("feels_like"),
            "min": main.get("temp_min"),
            "max": main.get("temp_max"),
            "unit": "°C",
        },
        "humidity": main.get("humidity"),
        "pressure": main.get("pressure"),
        "wind_speed": _ms_to_kmh(wind.get("speed")),
        "condition": cond.get("main"),
        "description": cond.get("description"),
        "visibility": raw.get("visibility"),
        "rainfall": (raw.get("rain") or {}).get("1h", 0),
        "sunrise": _local_time(sys_.get("sunrise"), tz_offset),
        "sunset": _local_time(sys_.get("sunset"), tz_offset),
        "last_updated": dt.datetime.now(dt.timezone.utc).isoformat(),
        "is_mock_data": False,
    }


def format_forecast(raw: Dict[str, Any], days: int = FORECAST_DAYS) -> Dict[str, Any]:
    """Fold 3-hourly slots into per-day min/max, summed rain."""
    city = raw.get("city") or {}
    tz = dt.timezone(dt.timedelta(seconds=city.get("timezone") or 0))

    daily: Dict[str, Dict[str, Any]] = {}
    for item in raw.get("list") or []:
        date = dt.datetime.fromtimestamp(item["dt"], tz).strftime("%d/%m/%Y")
        main = item.get("main") or {}
        cond = (item.get("weather") or [{}])[0]
        rain = (item.get("rain") or {}).get("3h", 0) or 0
        day = daily.get(date)
        if day is None:
            daily[date] = {
                "date": date,
                "temp_min": main["temp_min"],
                "temp_max": main["temp_max"],
                "humidity": main.get("humidity"),
                "condition": cond.get("main"),
                "description": cond.get("description"),
                "rainfall": rain,
                "wind_speed": _ms_to_kmh((item.get("wind") or {}).get("speed")),
            }
        else:
            day["temp_min"] = min(day["temp_min"], main["temp_min"])
            day["temp_max"] = max(day["temp_max"], main["temp_max"])
            day["rainfall"] += rain

    forecasts = list(daily.values())[:days]
    return {
        "location": city.get("name"),
        "forecasts": forecasts,
        "summary": forecast_summary(forecasts),
        "last_updated": dt.datetime.now(dt.timezone.utc).isoformat(),
        "is_mock_data": False,
    }


# ---------- live calls ----------
async def _get_owm(client: httpx.AsyncClient, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
    params = {"appid": settings.WEATHER_API_KEY, "units": "metric", **params}
    try:
        r = await client.get(f"{settings.WEATHER_API_URL}/{path}", params=params,
                             timeout=settings.WEATHER_TIMEOUT_SEC)
        r.raise_for_status()
        return r.json()
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamDataUnavailable(f"weather/{path}", str(e)) from e


async def fetch_current_weather(client: httpx.AsyncClient, lat: Optional[float] = None, lon: Optional[float] = None,
                                city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
    start = t()
    raw = await _get_owm(client, "weather", {"lang": "en", **_location_params(lat, lon, city, state)})
    try:
        data = format_current_weather(raw)
    except (KeyError, TypeError, IndexError) as e:
        raise UpstreamDataUnavailable("weather", f"unexpected payload: {e}") from e
    logger.info("⏱️  Current weather: %dms", round((t() - start) * 1000))
    return data


async def fetch_weather_forecast(client: httpx.AsyncClient, lat: Optional[float] = None, lon: Optional[float] = None,
                                 city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
    start = t()
    raw = await _get_owm(client, "forecast", {"cnt": FORECAST_SLOTS, **_location_params(lat, lon, city, state)})
    try:
        data = format_forecast(raw)
    except (KeyError, TypeError, IndexError) as e:
        raise UpstreamDataUnavailable("forecast", f"unexpected payload: {e}") from e
    if not data["forecasts"]:
        raise UpstreamDataUnavailable("forecast", "empty forecast")
    logger.info("⏱️  Weather forecast: %dms", round((t() - start) * 1000))
    return data
