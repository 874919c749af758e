# core/services/aggregator.py
"""
Combines, trims and formats upstream data into a context block for the LLM.

The aggregator never talks to a provider directly; it decides what a message
needs (see needs.analyze), fans out through ExternalDataService and renders
the results in a fixed order with hard caps so the prompt stays small.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from ...config import settings
from ...tools.weather import forecast_summary, rain_expected
from ..models.domain import AggregatedData, Advice, FarmingAdvice, Location
from .external_data import ExternalDataService
from .needs import analyze

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()

def _rupees(value) -> str:
    return "n/a" if value is None else f"₹{value}"

HUMIDITY_DISEASE_PCT = 80
HEAT_STRESS_C = 35


class DataAggregator:
    def __init__(self, external: ExternalDataService,
                 max_prices: Optional[int] = None,
                 max_forecast_days: Optional[int] = None,
                 max_schemes: Optional[int] = None):
        self.external = external
        self.max_prices = max_prices if max_prices is not None else settings.CONTEXT_MAX_PRICES
        self.max_forecast_days = max_forecast_days if max_forecast_days is not None else settings.CONTEXT_MAX_FORECAST_DAYS
        self.max_schemes = max_schemes if max_schemes is not None else settings.CONTEXT_MAX_SCHEMES

    async def fetch_relevant_data(self, message: str, location: Location) -> AggregatedData:
        needs = analyze(message)
        data = AggregatedData(needs=needs)
        if not needs.any_needed:
            return data

        start = t()
        data.fetched = True

        async def market():
            data.market_prices = await self.external.get_market_prices(
                state=location.state, district=location.district, commodity=needs.commodity)

        async def weather():
            data.weather = await self.external.get_current_weather(
                lat=location.lat, lon=location.lon, city=location.place, state=location.state)

        async def forecast():
            data.forecast = await self.external.get_weather_forecast(
                lat=location.lat, lon=location.lon, city=location.place, state=location.state)

        async def schemes():
            data.schemes = await self.external.get_government_schemes(state=location.state)

        jobs = []
        if needs.market_price:
            jobs.append(market())
        if needs.weather:
            jobs.append(weather())
        if needs.forecast:
            jobs.append(forecast())
        if needs.schemes:
            jobs.append(schemes())

        await asyncio.gather(*jobs)

        data.context = self.build_context(data, location)
        logger.info("⏱️  Enrichment (%d sources): %dms", len(jobs), round((t() - start) * 1000))
        return data

    # ---------- context rendering ----------
    def build_context(self, data: AggregatedData, location: Location) -> str:
        lines: List[str] = [f"\n\n--- REAL-TIME DATA FOR {location.label} ---"]

        mp = data.market_prices
        if mp and mp.get("prices"):
            lines.append("\n📊 CURRENT MARKET PRICES:")
            for p in mp["prices"][:self.max_prices]:
                lines.append(
                    f"• {p['commodity']} ({p['variety']}): {_rupees(p['modal_price'])}/Quintal "
                    f"(Min: {_rupees(p['min_price'])}, Max: {_rupees(p['max_price'])})"
                )
            if mp.get("is_mock_data"):
                lines.append("(Note: These are approximate/sample prices. For exact rates, visit your local mandi.)")

        wx = data.weather
        if wx:
            temp = wx["temperature"]
            lines.append("\n🌤️ CURRENT WEATHER:")
            lines.append(f"• Location: {wx['location']}")
            lines.append(f"• Temperature: {temp['current']}°C (Feels like {temp['feels_like']}°C)")
            lines.append(f"• Condition: {wx['condition']} - {wx['description']}")
            lines.append(f"• Humidity: {wx['humidity']}%")
            lines.append(f"• Wind: {wx['wind_speed']} km/h")
            if (wx.get("rainfall") or 0) > 0:
                lines.append(f"• Rainfall: {wx['rainfall']}mm in last hour")

        fc = data.forecast
        if fc and fc.get("forecasts"):
            days = fc["forecasts"][:self.max_forecast_days]
            lines.append(f"\n📅 {len(days)}-DAY WEATHER FORECAST:")
            for day in days:
                line = f"• {day['date']}: {day['condition']}, {day['temp_min']:.0f}°C - {day['temp_max']:.0f}°C"
                if (day.get("rainfall") or 0) > 0:
                    line += f", Rain: {day['rainfall']:.1f}mm"
                lines.append(line)
            lines.append(f"Summary: {forecast_summary(days)}")

        sc = data.schemes
        if sc and sc.get("schemes"):
            lines.append("\n🏛️ RELEVANT GOVERNMENT SCHEMES:")
            for s in sc["schemes"][:self.max_schemes]:
                lines.append(f"\n• {s['name']}")
                lines.append(f"  - Benefits: {s['benefits']}")
                lines.append(f"  - Eligibility: {s['eligibility']}")
                lines.append(f"  - How to Apply: {s['application_process']}")

        lines.append("\n--- END OF REAL-TIME DATA ---")
        lines.append("Use this data to provide accurate, location-specific advice to the farmer.\n")
        return "\n".join(lines)

    # ---------- dashboard / advice ----------
    async def get_dashboard_data(self, location: Location) -> Dict[str, Any]:
        return await self.external.get_all_data_for_location(location)

    async def get_quick_market_update(self, location: Location, commodity: Optional[str] = None) -> Dict[str, Any]:
        return await self.external.get_market_prices(
            state=location.state, district=location.district, commodity=commodity)

    async def get_farming_advice(self, location: Location) -> FarmingAdvice:
        weather, forecast = await asyncio.gather(
            self.external.get_current_weather(lat=location.lat, lon=location.lon,
                                              city=location.place, state=location.state),
            self.external.get_weather_forecast(lat=location.lat, lon=location.lon,
                                               city=location.place, state=location.state),
        )
        return FarmingAdvice(
            current_conditions=weather,
            forecast=forecast,
            advice=advise(weather, forecast),
        )


def advise(weather: Dict[str, Any], forecast: Dict[str, Any]) -> List[Advice]:
    """Threshold rules in fixed order; every matching rule contributes."""
    advice: List[Advice] = []

    if (weather.get("humidity") or 0) > HUMIDITY_DISEASE_PCT:
        advice.append(Advice(type="warning", category="Disease Prevention",
                             message="High humidity detected. Monitor crops for fungal diseases."))

    current = (weather.get("temperature") or {}).get("current")
    if current is not None and current > HEAT_STRESS_C:
        advice.append(Advice(type="warning", category="Heat Stress",
                             message="High temperature. Ensure adequate irrigation and consider mulching."))

    if rain_expected((forecast or {}).get("forecasts") or []):
        advice.append(Advice(type="info", category="Irrigation",
                             message="Rain expected in coming days. Adjust irrigation schedule accordingly."))
        advice.append(Advice(type="warning", category="Harvesting",
                             message="If crops are ready for harvest, consider harvesting before rain."))

    return advice
