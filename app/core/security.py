"""
Security utilities and authentication
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client
import logging

from app.core.database import get_supabase_admin_client, get_supabase_auth_client
from app.domain.exceptions import InvalidCredentials
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    supabase: Client = Depends(get_supabase_auth_client),
    admin_client: Client = Depends(get_supabase_admin_client)
) -> dict:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Bearer token
        supabase: Supabase client
        admin_client: Service-role client used for the profile lookup

    Returns:
        User dict with id, email, phone, metadata and has_profile

    Raises:
        HTTPException: If token is invalid or expired
    """
    token = credentials.credentials

    try:
        user = await AuthService(supabase, admin_client).get_current_user(token)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger.error(f"Authentication error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # The profile row is the source of truth for a finished signup
    has_profile = False
    try:
        profile_result = admin_client.from_("user_profiles").select("id").eq("id", user["id"]).execute()
        has_profile = len(profile_result.data) > 0
    except Exception as e:
        logger.warning(f"Failed to check profile for user {user['id']}: {e}")

    user["has_profile"] = has_profile
    return user
