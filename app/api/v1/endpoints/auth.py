"""
Authentication endpoints - password and OTP login for existing accounts
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
import logging

from app.api.v1.dependencies import get_auth_service
from app.core.security import get_current_user, security
from app.api.v1.schemas.auth import (
    AuthResponse,
    LoginOTPRequest,
    LoginRequest,
    OTPSentResponse,
    RefreshTokenRequest,
    UserResponse,
    VerifyLoginOTPRequest,
)
from app.api.v1.schemas.common import ErrorResponse, MessageResponse
from app.domain.exceptions import AuthFlowError, InvalidCredentials
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _session_response(verified) -> AuthResponse:
    if not verified.session:
        raise InvalidCredentials("No session was issued. Please confirm your account first.")
    return AuthResponse.from_verified(verified)


# ============================================================================
# PASSWORD LOGIN
# ============================================================================

@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Login",
    description="Sign in with an email address or a 10-digit mobile number and a password.",
    responses={
        200: {
            "description": "Login successful",
            "content": {
                "application/json": {
                    "example": {
                        "access_token": "eyJ0eXAiOiJKV1QiLCJhbGc...",
                        "refresh_token": "v1.MR45tLN-Io...",
                        "token_type": "bearer",
                        "user_id": "uuid-here",
                        "email": None,
                        "phone": "919876543210",
                        "expires_in": 3600
                    }
                }
            }
        },
        401: {"model": ErrorResponse, "description": "Invalid login credentials"},
        422: {"model": ErrorResponse, "description": "Missing identifier/password or malformed phone"}
    }
)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    ## Login

    Input containing `@` is treated as an email. Anything else must be a
    10-digit mobile number (or an already prefixed one) and is sent to the
    identity provider as `+91XXXXXXXXXX`.
    """
    try:
        verified = await auth_service.sign_in(request.email_or_phone, request.password)
        return _session_response(verified)
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )


# ============================================================================
# OTP LOGIN
# ============================================================================

@router.post(
    "/otp",
    response_model=OTPSentResponse,
    summary="Send Login OTP",
    description="Send a one-time code to the email or mobile number of an existing account.",
    responses={
        404: {"model": ErrorResponse, "description": "No account for this email or phone"},
        503: {"model": ErrorResponse, "description": "SMS provider or network unavailable"}
    }
)
async def send_login_otp(
    request: LoginOTPRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        receipt = await auth_service.send_login_otp(request.email_or_phone)
        return OTPSentResponse.from_receipt(receipt)
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Login OTP send error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification code"
        )


@router.post(
    "/otp/verify",
    response_model=AuthResponse,
    summary="Verify Login OTP",
    responses={
        401: {"model": ErrorResponse, "description": "Code invalid or expired"},
        422: {"model": ErrorResponse, "description": "Code is not 6 digits"}
    }
)
async def verify_login_otp(
    request: VerifyLoginOTPRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        verified = await auth_service.verify_login_otp(request.email_or_phone, request.token)
        return _session_response(verified)
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Login OTP verification error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Verification failed"
        )


# ============================================================================
# SESSION
# ============================================================================

@router.post(
    "/logout",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Logout User",
    description="Logout the currently authenticated user",
    responses={401: {"description": "Not authenticated"}}
)
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    ## Logout User

    **After Logout:**
    - Client should clear stored tokens
    - User must re-authenticate to access protected endpoints
    """
    try:
        await auth_service.sign_out(credentials.credentials)
        logger.info(f"User {current_user['id']} logged out")
        return MessageResponse(message="Successfully logged out")
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Logout error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Logout failed"
        )


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Current User",
    description="Retrieve information about the currently authenticated user",
    responses={401: {"description": "Not authenticated"}}
)
async def get_me(current_user: dict = Depends(get_current_user)):
    """`has_profile` is false while the user_profiles row is missing"""
    return UserResponse(
        id=current_user["id"],
        email=current_user.get("email"),
        phone=current_user.get("phone"),
        created_at=current_user.get("created_at"),
        user_metadata=current_user.get("user_metadata", {}),
        has_profile=current_user.get("has_profile", False)
    )


@router.post(
    "/refresh",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh Access Token",
    description="Refresh an expired access token using a refresh token",
    responses={401: {"model": ErrorResponse, "description": "Invalid or expired refresh token"}}
)
async def refresh_token(
    request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    try:
        verified = await auth_service.refresh_session(request.refresh_token)
        return _session_response(verified)
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Token refresh error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token refresh failed"
        )
