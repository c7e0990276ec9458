"""
Signup endpoints - staged registration confirmed by OTP
"""
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from app.api.v1.dependencies import get_auth_service, get_product_service, get_signup_service
from app.api.v1.schemas.auth import AuthResponse, OTPSentResponse
from app.api.v1.schemas.common import ErrorResponse
from app.api.v1.schemas.signup import (
    PasswordSignupResponse,
    SelectChannelRequest,
    SignupCompleteResponse,
    SignupFormRequest,
    SignupOTPResponse,
    SignupSessionResponse,
    VerifySignupRequest,
)
from app.domain.exceptions import AuthFlowError
from app.domain.models import SignupForm
from app.services.auth_service import AuthService
from app.services.product_service import ProductService
from app.services.signup_service import SignupService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/signup", tags=["Signup"])


# ============================================================================
# FORM AND STAGING
# ============================================================================

@router.post(
    "",
    response_model=SignupSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Signup Form",
    description="Validate the registration form and product ID, then stage the data until the user verifies an OTP.",
    responses={
        400: {"model": ErrorResponse, "description": "Product ID not found or inactive"},
        422: {"model": ErrorResponse, "description": "A form rule was violated"}
    }
)
async def submit_signup_form(
    request: SignupFormRequest,
    signup_service: SignupService = Depends(get_signup_service)
):
    """
    ## Submit Signup Form

    Rules are checked in form order and the first failing one is returned:
    product ID, full name, email, mobile number (10 digits), password
    (6+ characters), password confirmation.

    Nothing is created on the server yet. The returned `signup_id` is used by
    every later step.
    """
    try:
        session = await signup_service.submit_form(SignupForm(**request.model_dump()))
        return SignupSessionResponse.from_session(session)
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Signup form submission error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start signup"
        )


@router.get(
    "/{signup_id}",
    response_model=SignupSessionResponse,
    summary="Get Signup Status",
    responses={404: {"model": ErrorResponse, "description": "Signup expired or unknown"}}
)
async def get_signup(
    signup_id: str,
    signup_service: SignupService = Depends(get_signup_service)
):
    return SignupSessionResponse.from_session(await signup_service.get(signup_id))


@router.delete(
    "/{signup_id}",
    response_model=SignupSessionResponse,
    summary="Abandon Signup",
    description="Go back to the form. Staged data is discarded and late OTP responses are ignored."
)
async def abandon_signup(
    signup_id: str,
    signup_service: SignupService = Depends(get_signup_service)
):
    return SignupSessionResponse.from_session(await signup_service.abandon(signup_id))


# ============================================================================
# OTP
# ============================================================================

@router.post(
    "/{signup_id}/otp",
    response_model=SignupOTPResponse,
    summary="Send Signup OTP",
    description="Send a verification code to the staged email or mobile number.",
    responses={
        403: {"model": ErrorResponse, "description": "Signups are disabled"},
        409: {"model": ErrorResponse, "description": "Already registered, or wrong signup step"},
        503: {"model": ErrorResponse, "description": "SMS provider or network unavailable"}
    }
)
async def send_signup_otp(
    signup_id: str,
    request: SelectChannelRequest,
    signup_service: SignupService = Depends(get_signup_service)
):
    try:
        session, receipt = await signup_service.select_channel(signup_id, request.channel)
        return SignupOTPResponse(
            session=SignupSessionResponse.from_session(session),
            otp=OTPSentResponse.from_receipt(receipt, session.seconds_until_resend()),
        )
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Signup OTP send error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification code"
        )


@router.post(
    "/{signup_id}/otp/resend",
    response_model=SignupOTPResponse,
    summary="Resend Signup OTP",
    description="Send a fresh code over the same channel. Allowed once the resend countdown reaches zero.",
    responses={429: {"model": ErrorResponse, "description": "Resend countdown still running"}}
)
async def resend_signup_otp(
    signup_id: str,
    signup_service: SignupService = Depends(get_signup_service)
):
    session = await signup_service.get(signup_id)
    wait = session.seconds_until_resend()
    if wait > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Please wait {wait} seconds before requesting a new code",
            headers={"Retry-After": str(wait)}
        )

    try:
        session, receipt = await signup_service.resend(signup_id)
        return SignupOTPResponse(
            session=SignupSessionResponse.from_session(session),
            otp=OTPSentResponse.from_receipt(receipt, session.seconds_until_resend()),
        )
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Signup OTP resend error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to resend verification code"
        )


@router.post(
    "/{signup_id}/method",
    response_model=SignupSessionResponse,
    summary="Change Verification Method",
    description="Return to the method screen; the staged form data is kept."
)
async def change_signup_method(
    signup_id: str,
    signup_service: SignupService = Depends(get_signup_service)
):
    return SignupSessionResponse.from_session(await signup_service.change_method(signup_id))


@router.post(
    "/{signup_id}/verify",
    response_model=SignupCompleteResponse,
    summary="Verify Signup OTP",
    description="Confirm the code, create the account and save the profile.",
    responses={
        401: {"model": ErrorResponse, "description": "Code invalid or expired"},
        422: {"model": ErrorResponse, "description": "Code is not 6 digits"}
    }
)
async def verify_signup_otp(
    signup_id: str,
    request: VerifySignupRequest,
    signup_service: SignupService = Depends(get_signup_service)
):
    """
    ## Verify Signup OTP

    On success the account exists and the user is signed in. If the profile
    could not be saved after retries, `profile_complete` is false; the user
    can still proceed and fill it in later via `PATCH /profile`.
    """
    try:
        session, verified, result = await signup_service.verify(signup_id, request.token)
        return SignupCompleteResponse(
            session=SignupSessionResponse.from_session(session),
            auth=AuthResponse.from_verified(verified) if verified.session else None,
            user_id=verified.user_id,
            profile_complete=not result.degraded,
        )
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Signup verification error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Verification failed"
        )


# ============================================================================
# TRADITIONAL SIGNUP
# ============================================================================

@router.post(
    "/password",
    response_model=PasswordSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Email/Password Signup",
    description="Register without OTP; profile fields travel in the user metadata and are saved by the database trigger."
)
async def password_signup(
    request: SignupFormRequest,
    auth_service: AuthService = Depends(get_auth_service),
    product_service: ProductService = Depends(get_product_service)
):
    try:
        verified = await auth_service.sign_up(SignupForm(**request.model_dump()), product_service)
        return PasswordSignupResponse(
            user_id=verified.user_id,
            email=verified.email,
            auth=AuthResponse.from_verified(verified) if verified.session else None,
            message="Account created" if verified.session else "Check your email to confirm your account",
        )
    except (HTTPException, AuthFlowError):
        raise
    except Exception as e:
        logger.error(f"Password signup error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Signup failed"
        )
