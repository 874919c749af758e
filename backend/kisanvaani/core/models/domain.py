from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List, Literal
from datetime import datetime, timezone

# Domain models for the enrichment pipeline

class Coordinates(BaseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None

class Location(BaseModel):
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    village: Optional[str] = None
    pincode: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @property
    def lat(self) -> Optional[float]:
        return self.coordinates.lat if self.coordinates else None

    @property
    def lon(self) -> Optional[float]:
        return self.coordinates.lon if self.coordinates else None

    @property
    def place(self) -> Optional[str]:
        """City (or district) used for weather lookups by name."""
        return self.city or self.district

    @property
    def label(self) -> str:
        return f"{self.district or self.city}, {self.state}"

class DataNeeds(BaseModel):
    market_price: bool = False
    weather: bool = False
    forecast: bool = False
    schemes: bool = False
    commodity: Optional[str] = None

    @property
    def any_needed(self) -> bool:
        return self.market_price or self.weather or self.forecast or self.schemes

class AggregatedData(BaseModel):
    fetched: bool = False
    needs: DataNeeds = Field(default_factory=DataNeeds)
    market_prices: Optional[Dict[str, Any]] = None
    weather: Optional[Dict[str, Any]] = None
    forecast: Optional[Dict[str, Any]] = None
    schemes: Optional[Dict[str, Any]] = None
    context: str = ""

class Advice(BaseModel):
    type: Literal["warning", "info"]
    category: str
    message: str

class FarmingAdvice(BaseModel):
    current_conditions: Dict[str, Any]
    forecast: Dict[str, Any]
    advice: List[Advice] = []
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
