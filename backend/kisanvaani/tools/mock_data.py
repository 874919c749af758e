# backend/kisanvaani/tools/mock_data.py
"""
Fallback payloads used when an upstream provider is unavailable.

Each builder returns exactly the same keys as the live formatter for its
domain, tagged ``is_mock_data=True``, so the context builder never has to
care where the data came from.
"""
import datetime as dt
import random
from typing import Any, Dict, List, Optional

from .weather import forecast_summary


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def mock_market_prices(state: Optional[str] = None, district: Optional[str] = None,
                       commodity: Optional[str] = None) -> Dict[str, Any]:
    market = district or "Local Market"
    today = dt.date.today().isoformat()
    rows = [
        # (commodity, variety, min, max, modal)
        (commodity or "Wheat", "Local",   2200, 2500, 2350),
        (commodity or "Rice",  "Basmati", 3500, 4200, 3800),
        ("Tomato",             "Hybrid",  1500, 2500, 2000),
        ("Onion",              "Red",     1200, 1800, 1500),
        ("Potato",             "Local",    800, 1200, 1000),
    ]
    prices = [{
        "commodity": c,
        "variety": v,
        "market": market,
        "min_price": lo,
        "max_price": hi,
        "modal_price": modal,
        "price_unit": "INR/Quintal",
        "arrival_date": today,
    } for c, v, lo, hi, modal in rows]

    return {
        "prices": prices,
        "total_records": len(prices),
        "summary": f"Market prices for {state or 'your region'} (Sample Data)",
        "last_updated": _now_iso(),
        "is_mock_data": True,
    }


def mock_current_weather(city: Optional[str] = None, state: Optional[str] = None) -> Dict[str, Any]:
    return {
        "location": city or state or "Your Location",
        "temperature": {"current": 28, "feels_like": 30, "min": 24, "max": 32, "unit": "°C"},
        "humidity": 65,
        "pressure": 1013,
        "wind_speed": 12,
        "condition": "Partly Cloudy",
        "description": "scattered clouds",
        "visibility": 10000,
        "rainfall": 0,
        "sunrise": "06:15 AM",
        "sunset": "06:30 PM",
        "last_updated": _now_iso(),
        "is_mock_data": True,
    }


def mock_weather_forecast(city: Optional[str] = None, state: Optional[str] = None,
                          rng: Optional[random.Random] = None, days: int = 5) -> Dict[str, Any]:
    rng = rng or random.Random()
    forecasts: List[Dict[str, Any]] = []
    today = dt.date.today()
    for i in range(days):
        day = today + dt.timedelta(days=i)
        forecasts.append({
            "date": day.strftime("%d/%m/%Y"),
            "temp_min": 22 + rng.random() * 5,
            "temp_max": 30 + rng.random() * 5,
            "humidity": 60 + rng.random() * 20,
            "condition": rng.choice(["Clear", "Clouds", "Rain"]),
            "description": "Weather forecast",
            "rainfall": rng.random() * 10 if rng.random() > 0.7 else 0,
            "wind_speed": 8 + rng.random() * 10,
        })

    return {
        "location": city or state or "Your Location",
        "forecasts": forecasts,
        "summary": forecast_summary(forecasts),
        "last_updated": _now_iso(),
        "is_mock_data": True,
    }


_NATIONAL_SCHEMES: List[Dict[str, Any]] = [
    {
        "name": "PM-KISAN (Pradhan Mantri Kisan Samman Nidhi)",
        "description": "Direct income support of ₹6,000 per year to farmer families",
        "benefits": "₹6,000 per year in 3 equal installments",
        "eligibility": "All land-holding farmer families",
        "application_process": "Apply online at pmkisan.gov.in or through CSC centers",
        "ministry": "Ministry of Agriculture",
        "state": "All India",
        "category": "Income Support",
        "subsidy_amount": "₹6,000/year",
        "link": "https://pmkisan.gov.in",
    },
    {
        "name": "PM Fasal Bima Yojana (PMFBY)",
        "description": "Crop insurance scheme to protect farmers against crop loss",
        "benefits": "Insurance coverage for crop loss due to natural calamities",
        "eligibility": "All farmers growing notified crops",
        "application_process": "Apply through bank, CSC or PMFBY portal",
        "ministry": "Ministry of Agriculture",
        "state": "All India",
        "category": "Crop Insurance",
        "subsidy_amount": "Premium subsidy up to 98%",
        "link": "https://pmfby.gov.in",
    },
    {
        "name": "Kisan Credit Card (KCC)",
        "description": "Provides farmers with affordable credit for agricultural needs",
        "benefits": "Credit at 4% interest rate (with timely repayment)",
        "eligibility": "All farmers, sharecroppers, tenant farmers",
        "application_process": "Apply at any bank branch with land documents",
        "ministry": "Ministry of Finance",
        "state": "All India",
        "category": "Credit/Loan",
        "subsidy_amount": "Interest subvention of 3%",
        "link": "https://www.nabard.org",
    },
    {
        "name": "Soil Health Card Scheme",
        "description": "Provides soil health cards with crop-wise nutrient recommendations",
        "benefits": "Free soil testing and recommendations",
        "eligibility": "All farmers",
        "application_process": "Contact nearest Krishi Vigyan Kendra or agriculture office",
        "ministry": "Ministry of Agriculture",
        "state": "All India",
        "category": "Soil Health",
        "subsidy_amount": "Free service",
        "link": "https://soilhealth.dac.gov.in",
    },
    {
        "name": "PM Krishi Sinchai Yojana (PMKSY)",
        "description": "Promotes efficient water use through micro-irrigation",
        "benefits": "Subsidy on drip and sprinkler irrigation systems",
        "eligibility": "All farmers",
        "application_process": "Apply through state agriculture department",
        "ministry": "Ministry of Agriculture",
        "state": "All India",
        "category": "Irrigation",
        "subsidy_amount": "Up to 55-90% subsidy",
        "link": "https://pmksy.gov.in",
    },
    {
        "name": "National Mission on Sustainable Agriculture (NMSA)",
        "description": "Promotes sustainable farming practices",
        "benefits": "Training and financial support for sustainable practices",
        "eligibility": "All farmers adopting sustainable practices",
        "application_process": "Contact district agriculture officer",
        "ministry": "Ministry of Agriculture",
        "state": "All India",
        "category": "Sustainable Farming",
        "subsidy_amount": "Varies by component",
        "link": "https://nmsa.dac.gov.in",
    },
]


def mock_government_schemes(state: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
    schemes = [dict(s) for s in _NATIONAL_SCHEMES]
    if state:
        # PMKSY is administered through the state department
        schemes[4]["state"] = state
        schemes.append({
            "name": f"{state} Kisan Kalyan Yojana",
            "description": f"State-specific welfare scheme for farmers in {state}",
            "benefits": "Additional financial support and subsidies",
            "eligibility": f"Farmers residing in {state}",
            "application_process": "Apply through state agriculture portal",
            "ministry": f"{state} Agriculture Department",
            "state": state,
            "category": "State Scheme",
            "subsidy_amount": "Varies",
            "link": "#",
        })

    return {
        "schemes": schemes,
        "total_schemes": len(schemes),
        "summary": f"Found {len(schemes)} government schemes for farmers" + (f" in {state}" if state else ""),
        "last_updated": _now_iso(),
        "is_mock_data": True,
    }
