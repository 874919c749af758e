# backend/kisanvaani/tools/schemes.py
import datetime as dt
import logging
import time
from typing import Optional, Dict, Any

import httpx

from kisanvaani.config import settings
from kisanvaani.errors import UpstreamDataUnavailable

logger = logging.getLogger(__name__)

def t(): return time.perf_counter()


def format_schemes(raw: Dict[str, Any]) -> Dict[str, Any]:
    schemes = [{
        "name": r.get("scheme_name"),
        "description": r.get("description"),
        "benefits": r.get("benefits"),
        "eligibility": r.get("eligibility"),
        "application_process": r.get("application_process"),
        "ministry": r.get("ministry"),
        "state": r.get("state") or "All India",
        "category": r.get("category"),
        "subsidy_amount": r.get("subsidy_amount"),
        "link": r.get("application_link"),
    } for r in raw.get("records") or []]

    return {
        "schemes": schemes,
        "total_schemes": len(schemes),
        "summary": f"Found {len(schemes)} government schemes for farmers",
        "last_updated": dt.datetime.now(dt.timezone.utc).isoformat(),
        "is_mock_data": False,
    }


async def fetch_government_schemes(client: httpx.AsyncClient, state: Optional[str] = None,
                                   category: Optional[str] = None) -> Dict[str, Any]:
    """Query the schemes registry; raises UpstreamDataUnavailable when it has nothing usable."""
    start = t()
    params = {"api-key": settings.GOV_SCHEME_API_KEY, "format": "json"}
    if state:
        params["state"] = state
    if category:
        params["category"] = category

    try:
        r = await client.get(f"{settings.GOV_SCHEME_API_URL}/schemes", params=params,
                             timeout=settings.SCHEMES_TIMEOUT_SEC)
        r.raise_for_status()
        body = r.json()
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamDataUnavailable("schemes", str(e)) from e

    if not isinstance(body, dict) or not body.get("records"):
        raise UpstreamDataUnavailable("schemes", "no records")

    data = format_schemes(body)
    logger.info("⏱️  Government schemes: %d in %dms", data["total_schemes"], round((t() - start) * 1000))
    return data
