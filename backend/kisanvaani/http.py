import importlib.util
import logging
from typing import Optional

import httpx

from kisanvaani.config import settings

logger = logging.getLogger(__name__)

USER_AGENT = "KisanVaani/1.0 (+https://kisanvaani.example.com)"

# Shared by the mandi, weather and schemes fetchers; owned by the app lifecycle
client: Optional[httpx.AsyncClient] = None

def _http2_available() -> bool:
    return importlib.util.find_spec("h2") is not None

def build_http_client() -> httpx.AsyncClient:
    """A pooled client; each fetcher still passes its own per-request timeout."""
    http2 = _http2_available()
    if not http2:
        logger.info("HTTP/2 not available. Install with: pip install kisanvaani[http2]")
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.HTTP_READ_TIMEOUT_SEC, connect=settings.HTTP_CONNECT_TIMEOUT_SEC),
        http2=http2,
        limits=httpx.Limits(max_connections=settings.HTTP_MAX_CONNECTIONS,
                            max_keepalive_connections=settings.HTTP_MAX_CONNECTIONS // 2,
                            keepalive_expiry=30),
        headers={"User-Agent": USER_AGENT, "Accept-Encoding": "gzip, deflate"},
    )

async def init_http():
    """Create the shared client (no-op when it already exists)."""
    global client
    if client is None:
        client = build_http_client()

async def close_http():
    global client
    if client is not None:
        await client.aclose()
        client = None

def get_http_client() -> httpx.AsyncClient:
    if client is None:
        raise RuntimeError("HTTP client not initialized. Call init_http() first.")
    return client

async def ensure_http_client() -> httpx.AsyncClient:
    """Return the shared client, creating it for standalone (CLI/script) usage."""
    if client is None:
        await init_http()
        logger.info("🔗 HTTP client initialized on demand")
    return get_http_client()
