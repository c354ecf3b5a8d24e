import logging

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import ProfileUpdate
from ..services import ProfileService
from .deps import success, get_profile_service, get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("")
def get_profile(user_id: str = Depends(get_current_user_id),
                profiles: ProfileService = Depends(get_profile_service)):
    """The signed-in customer's profile"""
    return success(profiles.get_profile(user_id))


@router.put("")
def update_profile(
        request: ProfileUpdate,
        user_id: str = Depends(get_current_user_id),
        profiles: ProfileService = Depends(get_profile_service)
):
    """Set the name and contact details shown to shops the customer follows"""
    try:
        return success(profiles.update_profile(user_id, request), message="Profile updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error updating profile: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )
