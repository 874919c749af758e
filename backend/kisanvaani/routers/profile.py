"""
/api/profile endpoints
"""
from fastapi import APIRouter, Depends

from kisanvaani.di import get_current_user, get_profile_store
from kisanvaani.schemas import UpdateLocationRequest
from kisanvaani.core.adapters.memory import InMemoryProfileStore
from kisanvaani.core.models.io import UserProfile

router = APIRouter(prefix="/api/profile", tags=["profile"])

@router.get("")
async def get_profile(user: UserProfile = Depends(get_current_user)):
    return {"success": True, "user": user.model_dump(mode="json")}

@router.put("/location")
async def update_location(req: UpdateLocationRequest,
                          user: UserProfile = Depends(get_current_user),
                          store: InMemoryProfileStore = Depends(get_profile_store)):
    user.location = req.location
    if req.farming_profile is not None:
        user.farming_profile = req.farming_profile
    await store.save(user)
    return {"success": True, "message": "Location updated successfully", "user": user.model_dump(mode="json")}
