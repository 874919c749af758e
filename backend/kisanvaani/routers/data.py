"""
/api/data endpoints: the same cached provider data the chat uses, for the dashboard
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from kisanvaani.di import get_aggregator, get_current_user, get_external_data_service, require_state
from kisanvaani.schemas import ClearCacheResponse, DataResponse
from kisanvaani.core.models.domain import Location
from kisanvaani.core.models.io import UserProfile
from kisanvaani.core.services.aggregator import DataAggregator
from kisanvaani.core.services.external_data import ExternalDataService

router = APIRouter(prefix="/api/data", tags=["data"])

def _location(user: UserProfile) -> Location:
    return user.location or Location()

@router.get("/dashboard", response_model=DataResponse)
async def dashboard(user: UserProfile = Depends(require_state),
                    aggregator: DataAggregator = Depends(get_aggregator)):
    return DataResponse(data=await aggregator.get_dashboard_data(user.location))

@router.get("/market-prices", response_model=DataResponse)
async def market_prices(commodity: Optional[str] = Query(None),
                        market: Optional[str] = Query(None),
                        state: Optional[str] = Query(None),
                        district: Optional[str] = Query(None),
                        user: UserProfile = Depends(get_current_user),
                        external: ExternalDataService = Depends(get_external_data_service)):
    loc = _location(user)
    data = await external.get_market_prices(
        state=state or loc.state, district=district or loc.district, market=market, commodity=commodity)
    return DataResponse(data=data)

@router.get("/weather", response_model=DataResponse)
async def weather(user: UserProfile = Depends(get_current_user),
                  external: ExternalDataService = Depends(get_external_data_service)):
    loc = _location(user)
    data = await external.get_current_weather(lat=loc.lat, lon=loc.lon, city=loc.place, state=loc.state)
    return DataResponse(data=data)

@router.get("/weather/forecast", response_model=DataResponse)
async def weather_forecast(user: UserProfile = Depends(get_current_user),
                           external: ExternalDataService = Depends(get_external_data_service)):
    loc = _location(user)
    data = await external.get_weather_forecast(lat=loc.lat, lon=loc.lon, city=loc.place, state=loc.state)
    return DataResponse(data=data)

@router.get("/schemes", response_model=DataResponse)
async def schemes(category: Optional[str] = Query(None),
                  user: UserProfile = Depends(get_current_user),
                  external: ExternalDataService = Depends(get_external_data_service)):
    data = await external.get_government_schemes(state=_location(user).state, category=category)
    return DataResponse(data=data)

@router.get("/farming-advice", response_model=DataResponse)
async def farming_advice(user: UserProfile = Depends(require_state),
                         aggregator: DataAggregator = Depends(get_aggregator)):
    advice = await aggregator.get_farming_advice(user.location)
    return DataResponse(data=advice.model_dump(mode="json"))

@router.post("/clear-cache", response_model=ClearCacheResponse)
async def clear_cache(user: UserProfile = Depends(get_current_user),
                      external: ExternalDataService = Depends(get_external_data_service)):
    return ClearCacheResponse(cleared=external.clear_cache())
