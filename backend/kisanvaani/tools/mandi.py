# backend/kisanvaani/tools/mandi.py
import asyncio
import datetime as dt
import json
import logging
import time
from typing import Optional, Dict, Any, List

import httpx

from kisanvaani.config import settings
from kisanvaani.errors import UpstreamDataUnavailable

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()

# -------------------------------
# Configuration
# -------------------------------
RESOURCE_ID = "9ef84268-d588-465a-a308-a864a43d0070"  # Current Daily Price of Various Commodities
PAGE_LIMIT = 50

# -------------------------------
# Helper Functions
# -------------------------------
def _to_int(x: Any) -> Optional[int]:
    """Safely convert a value to a non-negative integer."""
    try:
        i = int(float(x))
        return i if i >= 0 else None
    except (ValueError, TypeError):
        return None

def _parse_ddmmyyyy(s: Optional[str]) -> Optional[dt.date]:
    """Parse a 'dd/mm/yyyy' string into a date object."""
    if not s:
        return None
    try:
        return dt.datetime.strptime(s.strip(), "%d/%m/%Y").date()
    except ValueError:
        return None

def _normalize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Standardize the structure and types of a record from the API."""
    ad_date = _parse_ddmmyyyy(item.get("arrival_date"))
    return {
        "commodity": item.get("commodity"),
        "variety": item.get("variety"),
        "market": item.get("market"),
        "min_price": _to_int(item.get("min_price")),
        "max_price": _to_int(item.get("max_price")),
        "modal_price": _to_int(item.get("modal_price")),
        "price_unit": "INR/Quintal",
        "arrival_date": ad_date.isoformat() if ad_date else item.get("arrival_date"),
    }

def format_market_prices(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a data.gov.in response into the market payload used downstream."""
    prices = [_normalize_item(r) for r in raw.get("records") or []]
    return {
        "prices": prices,
        "total_records": len(prices),
        "summary": f"Found {len(prices)} market price records",
        "last_updated": dt.datetime.now(dt.timezone.utc).isoformat(),
        "is_mock_data": False,
    }

def _is_rate_limited(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    err = body.get("error") or body.get("message") or ""
    return "rate limit" in str(err).lower()

# -------------------------------
# Core API Interaction
# -------------------------------
async def fetch_market_prices(
    client: httpx.AsyncClient,
    state: Optional[str] = None,
    district: Optional[str] = None,
    market: Optional[str] = None,
    commodity: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Query the Agmarknet registry for the latest mandi prices.

    Raises UpstreamDataUnavailable on network/HTTP errors, rate limiting or an
    empty result set so the caller can substitute sample data.
    """
    start = t()
    params = {
        "api-key": settings.DATA_GOV_IN_API_KEY,
        "format": "json",
        "limit": str(PAGE_LIMIT),
    }
    # data.gov.in filter format: filters[column_name]=value
    filters = {"state": state, "district": district, "market": market, "commodity": commodity}
    for col, val in filters.items():
        if val:
            params[f"filters[{col}]"] = val

    url = f"{settings.MARKET_PRICE_API_URL}/{RESOURCE_ID}"
    try:
        r = await client.get(url, params=params, headers={"Accept": "application/json"},
                             timeout=settings.MARKET_TIMEOUT_SEC)
        r.raise_for_status()
        body = r.json()
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamDataUnavailable("market", str(e)) from e

    if _is_rate_limited(body):
        raise UpstreamDataUnavailable("market", "rate limited")
    records: List[Dict[str, Any]] = (body or {}).get("records") or []
    if not records:
        raise UpstreamDataUnavailable("market", "no records")

    data = format_market_prices(body)
    api_ms = round((t() - start) * 1000)
    logger.info("⏱️  Market prices: %d records in %dms", data["total_records"], api_ms)
    return data


# -------------------------------
# Command-Line Interface for Testing
# -------------------------------
async def _cli(commodity: Optional[str], district: Optional[str], state: Optional[str], market: Optional[str]):
    """CLI wrapper to test fetch_market_prices against the live registry."""
    async with httpx.AsyncClient() as client:
        try:
            data = await fetch_market_prices(client, state=state, district=district,
                                             market=market, commodity=commodity)
            print(json.dumps(data, indent=2, ensure_ascii=False))
        except UpstreamDataUnavailable as e:
            print(json.dumps({"error": str(e)}, indent=2, ensure_ascii=False))

if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Fetch current mandi prices from Agmarknet via data.gov.in")
    parser.add_argument("--commodity", default=None, help="e.g., 'Tomato'")
    parser.add_argument("--state", default=None, help="e.g., 'Uttar Pradesh'")
    parser.add_argument("--district", default=None, help="e.g., 'Azamgarh'")
    parser.add_argument("--market", default=None, help="e.g., 'Azamgarh'")
    args = parser.parse_args()

    asyncio.run(_cli(args.commodity, args.district, args.state, args.market))
