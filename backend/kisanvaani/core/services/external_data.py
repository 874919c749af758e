# core/services/external_data.py
import asyncio
import datetime as dt
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ...errors import UpstreamDataUnavailable
from ...http import ensure_http_client
from ...tools.mandi import fetch_market_prices
from ...tools.weather import fetch_current_weather, fetch_weather_forecast
from ...tools.schemes import fetch_government_schemes
from ...tools.mock_data import (
    mock_market_prices, mock_current_weather, mock_weather_forecast, mock_government_schemes,
)
from ...utils.cache import ExternalDataCache
from ..models.domain import Location

logger = logging.getLogger(__name__)


def _norm(v: Any) -> str:
    return str(v).strip().lower() if v not in (None, "") else "-"


class ExternalDataService:
    """
    Cached access to the market, weather and schemes providers.

    Every getter resolves to a payload: live data when the provider answers,
    otherwise the matching mock (which is returned but never cached).
    """

    def __init__(self, cache: ExternalDataCache, client: Optional[httpx.AsyncClient] = None,
                 rng: Optional[random.Random] = None):
        self.cache = cache
        self._client = client
        self._rng = rng

    async def _http(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await ensure_http_client()

    async def _cached_or_mock(self, key: str, live: Callable[[httpx.AsyncClient], Awaitable[Dict[str, Any]]],
                              mock: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        async def fetch():
            return await live(await self._http())

        try:
            return await self.cache.get_or_fetch(key, fetch)
        except UpstreamDataUnavailable as e:
            logger.warning("⚠️  %s unavailable (%s), using mock data", e.provider, e.reason)
            return mock()
        except Exception:
            logger.exception("❌ Unexpected error fetching %s, using mock data", key)
            return mock()

    # ==================== MARKET PRICES ====================
    async def get_market_prices(self, state: Optional[str] = None, district: Optional[str] = None,
                                market: Optional[str] = None, commodity: Optional[str] = None) -> Dict[str, Any]:
        key = f"market:{_norm(state)}:{_norm(district)}:{_norm(market)}:{_norm(commodity)}"
        return await self._cached_or_mock(
            key,
            lambda c: fetch_market_prices(c, state=state, district=district, market=market, commodity=commodity),
            lambda: mock_market_prices(state, district, commodity),
        )

    # ==================== WEATHER ====================
    async def get_current_weather(self, lat: Optional[float] = None, lon: Optional[float] = None,
                                  city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
        key = f"weather_current:{_norm(lat if lat is not None else city)}:{_norm(lon if lon is not None else state)}"
        return await self._cached_or_mock(
            key,
            lambda c: fetch_current_weather(c, lat=lat, lon=lon, city=city, state=state),
            lambda: mock_current_weather(city, state),
        )

    async def get_weather_forecast(self, lat: Optional[float] = None, lon: Optional[float] = None,
                                   city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
        key = f"weather_forecast:{_norm(lat if lat is not None else city)}:{_norm(lon if lon is not None else state)}"
        return await self._cached_or_mock(
            key,
            lambda c: fetch_weather_forecast(c, lat=lat, lon=lon, city=city, state=state),
            lambda: mock_weather_forecast(city, state, rng=self._rng),
        )

    # ==================== GOVERNMENT SCHEMES ====================
    async def get_government_schemes(self, state: Optional[str] = None,
                                     category: Optional[str] = None) -> Dict[str, Any]:
        key = f"schemes:{_norm(state)}:{_norm(category)}"
        return await self._cached_or_mock(
            key,
            lambda c: fetch_government_schemes(c, state=state, category=category),
            lambda: mock_government_schemes(state, category),
        )

    # ==================== COMBINED ====================
    async def get_all_data_for_location(self, location: Location) -> Dict[str, Any]:
        """Dashboard snapshot: every domain for one location, fetched in parallel."""
        logger.info("📍 Fetching data for location: %s", location.label)
        try:
            market, weather, forecast, schemes = await asyncio.gather(
                self.get_market_prices(state=location.state, district=location.district),
                self.get_current_weather(lat=location.lat, lon=location.lon, city=location.place, state=location.state),
                self.get_weather_forecast(lat=location.lat, lon=location.lon, city=location.place, state=location.state),
                self.get_government_schemes(state=location.state),
            )
        except Exception as e:
            logger.exception("❌ Error fetching combined data")
            return {"success": False, "error": str(e), "location": location.model_dump()}

        return {
            "success": True,
            "location": location.model_dump(),
            "market_prices": market,
            "current_weather": weather,
            "weather_forecast": forecast,
            "government_schemes": schemes,
            "fetched_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        }

    def clear_cache(self) -> int:
        return self.cache.clear()
