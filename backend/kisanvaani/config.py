# backend/kisanvaani/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

dotenv_path = Path(__file__).parents[2] / '.env'
load_dotenv(dotenv_path)


def _csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]


class Settings:
    # --- OpenAI (chat sessions) ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    # Ordered by preference; rotated on quota errors
    OPENAI_MODELS: list[str] = _csv("OPENAI_MODELS", "gpt-4o-mini,gpt-4.1-mini,gpt-3.5-turbo")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "500"))
    LLM_TIMEOUT_SEC: float = float(os.getenv("LLM_TIMEOUT_SEC", "60"))
    QUOTA_BACKOFF_SEC: float = float(os.getenv("QUOTA_BACKOFF_SEC", "40"))
    # Chat sessions untouched this long are dropped (the transcript restores them)
    SESSION_IDLE_SEC: int = int(os.getenv("SESSION_IDLE_SEC", "21600"))
    SESSION_SWEEP_SEC: int = 600

    # --- Data.gov.in (mandi) ---
    DATA_GOV_IN_API_KEY: str = os.getenv("DATA_GOV_IN_API_KEY", "")
    MARKET_PRICE_API_URL: str = os.getenv("MARKET_PRICE_API_URL", "https://api.data.gov.in/resource")
    MARKET_TIMEOUT_SEC: float = 15.0

    # --- OpenWeatherMap ---
    WEATHER_API_URL: str = os.getenv("WEATHER_API_URL", "https://api.openweathermap.org/data/2.5")
    WEATHER_API_KEY: str = os.getenv("WEATHER_API_KEY", "")
    WEATHER_TIMEOUT_SEC: float = 10.0

    # --- Government schemes registry ---
    GOV_SCHEME_API_URL: str = os.getenv("GOV_SCHEME_API_URL", "https://api.data.gov.in/resource")
    GOV_SCHEME_API_KEY: str = os.getenv("GOV_SCHEME_API_KEY", "")
    SCHEMES_TIMEOUT_SEC: float = 10.0

    # Shared HTTP client ceilings (per-request timeouts above are tighter)
    HTTP_CONNECT_TIMEOUT_SEC: float = 10.0
    HTTP_READ_TIMEOUT_SEC: float = 15.0
    HTTP_MAX_CONNECTIONS: int = int(os.getenv("HTTP_MAX_CONNECTIONS", "100"))

    # Cache (30 min for all external data)
    CACHE_TTL_SEC: int = int(os.getenv("CACHE_TTL_SEC", "1800"))
    CACHE_SWEEP_SEC: int = 3600

    # Context block caps (prompt size)
    CONTEXT_MAX_PRICES: int = int(os.getenv("CONTEXT_MAX_PRICES", "5"))
    CONTEXT_MAX_FORECAST_DAYS: int = int(os.getenv("CONTEXT_MAX_FORECAST_DAYS", "5"))
    CONTEXT_MAX_SCHEMES: int = int(os.getenv("CONTEXT_MAX_SCHEMES", "4"))

    # --- Auth / web ---
    JWT_SECRET: str = os.getenv("JWT_SECRET", "kisanvaani-dev-secret-change-me-in-production")
    JWT_ALGORITHM: str = "HS256"
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
