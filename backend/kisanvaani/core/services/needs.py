# core/services/needs.py
import logging
import re
from typing import Optional

from ..models.domain import DataNeeds

logger = logging.getLogger(__name__)

# Keywords that trigger each data fetch (English, Hinglish, Devanagari)
TRIGGER_KEYWORDS = {
    "market_price": ["price", "rate", "mandi", "market", "sell", "cost", "bhav", "daam", "बाजार", "मंडी", "दाम"],
    "weather": ["weather", "rain", "temperature", "mausam", "barish", "garmi", "sardi", "मौसम", "बारिश", "तापमान"],
    "schemes": ["scheme", "yojana", "subsidy", "government", "sarkar", "loan", "insurance", "bima",
                "योजना", "सरकार", "सब्सिडी"],
    "forecast": ["forecast", "next week", "coming days", "agle din", "agla hafta", "prediction"],
}

# Order matters: the first listed crop found in the message wins
COMMODITIES = [
    "wheat", "rice", "paddy", "cotton", "sugarcane", "maize", "corn",
    "tomato", "onion", "potato", "soybean", "groundnut", "mustard",
    "chana", "dal", "arhar", "moong", "urad", "masoor",
    "banana", "mango", "apple", "orange", "grapes",
    "गेहूं", "चावल", "धान", "कपास", "गन्ना", "मक्का",
    "टमाटर", "प्याज", "आलू", "सोयाबीन",
]

# Latin crop names must start a word ("rice" is not found inside "price");
# plural/suffix forms still match ("tomatoes").
_COMMODITY_PATTERNS = [
    (name, re.compile(r"(?<![a-z])" + re.escape(name)) if name.isascii() else None)
    for name in COMMODITIES
]


def _has_any(text: str, keywords: list[str]) -> bool:
    return any(kw in text for kw in keywords)


def extract_commodity(message: str) -> Optional[str]:
    """Return the first crop of COMMODITIES mentioned in the message, else None."""
    if not isinstance(message, str) or not message:
        return None
    lower = message.lower()
    for name, pattern in _COMMODITY_PATTERNS:
        if pattern is not None:
            if pattern.search(lower):
                return name
        elif name in lower:
            return name
    return None


def analyze(message: object) -> DataNeeds:
    """
    Decide which external data a message needs. Pure keyword matching;
    never raises, and returns all-false needs for empty or non-text input.
    """
    needs = DataNeeds()
    if not isinstance(message, str) or not message.strip():
        return needs

    lower = message.lower()

    if _has_any(lower, TRIGGER_KEYWORDS["market_price"]):
        needs.market_price = True
        needs.commodity = extract_commodity(message)

    if _has_any(lower, TRIGGER_KEYWORDS["weather"]):
        needs.weather = True

    if _has_any(lower, TRIGGER_KEYWORDS["forecast"]):
        needs.forecast = True
        needs.weather = True  # current conditions are useful alongside the forecast

    if _has_any(lower, TRIGGER_KEYWORDS["schemes"]):
        needs.schemes = True

    logger.debug("🔍 Data needs for %r: %s", message[:60], needs.model_dump())
    return needs
