"""
Profile endpoints for the signed-in user
"""
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from app.api.v1.dependencies import get_auth_service, get_product_service, get_profile_service
from app.api.v1.schemas.common import ErrorResponse
from app.api.v1.schemas.profile import UpdateProfileRequest
from app.core.security import get_current_user
from app.domain.exceptions import AuthFlowError
from app.domain.models import Profile
from app.services.auth_service import AuthService
from app.services.product_service import ProductService
from app.services.profile_service import ProfileService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get(
    "",
    response_model=Profile,
    summary="Get My Profile",
    responses={404: {"model": ErrorResponse, "description": "Profile not created yet"}}
)
async def get_my_profile(
    current_user: dict = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    try:
        profile = await profile_service.get_profile(current_user["id"])
    except Exception as e:
        logger.error(f"Error fetching profile for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch profile"
        )

    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )
    return profile


@router.patch(
    "",
    response_model=Profile,
    summary="Update My Profile",
    description="Update profile fields. Omitted fields are left unchanged.",
    responses={
        400: {"model": ErrorResponse, "description": "Product ID not found or inactive"},
        422: {"model": ErrorResponse, "description": "Malformed phone number"}
    }
)
async def update_my_profile(
    request: UpdateProfileRequest,
    current_user: dict = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
    product_service: ProductService = Depends(get_product_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    ## Update My Profile

    A new product ID must belong to an active product. The user metadata bag
    is kept in step with the profile row.
    """
    user_id = current_user["id"]
    updates = request.model_dump(exclude_none=True)

    try:
        if "product_id" in updates:
            product = await product_service.validate_product_id(updates["product_id"])
            updates["product_id"] = product.id

        profile = await profile_service.update_profile(user_id, updates)
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found"
            )

        try:
            await auth_service.update_user_metadata(user_id, {
                "full_name": profile.full_name,
                "product_id": profile.product_id,
                "phone_number": profile.phone_number,
            })
        except AuthFlowError as e:
            logger.warning(f"Profile saved but metadata sync failed for user {user_id}: {e.message}")

        return profile
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Error updating profile for user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )
