"""
Signup flow schemas
"""
from pydantic import BaseModel, Field
from typing import Optional

from app.api.v1.schemas.auth import AuthResponse, OTPSentResponse
from app.domain.enums import OTPChannel
from app.domain.models import SignupSession
from app.utils.validators import format_phone_for_display, mask_email


class SignupFormRequest(BaseModel):
    """
    Registration form. Fields are not constrained here so that the API reports
    the same ordered rule messages the form shows.
    """
    product_id: str = Field("", examples=["AGRICURE-001"])
    full_name: str = Field("", examples=["Ramesh Kumar"])
    mobile_number: str = Field("", examples=["9876543210"])
    email: str = Field("", examples=["ramesh@example.com"])
    password: str = Field("", examples=["secret123"])
    confirm_password: str = Field("", examples=["secret123"])

    model_config = {
        "json_schema_extra": {
            "example": {
                "product_id": "AGRICURE-001",
                "full_name": "Ramesh Kumar",
                "mobile_number": "9876543210",
                "email": "ramesh@example.com",
                "password": "secret123",
                "confirm_password": "secret123"
            }
        }
    }


class SelectChannelRequest(BaseModel):
    """Verification channel chosen on the method screen"""
    channel: OTPChannel = Field(..., examples=["phone"])


class VerifySignupRequest(BaseModel):
    token: str = Field(..., examples=["123456"], description="6-digit OTP code")


class SignupSessionResponse(BaseModel):
    """Where a signup stands; never exposes the staged password"""
    signup_id: str
    state: str
    channel: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    product_id: Optional[str] = None
    resend_after_seconds: int = 0
    profile_degraded: bool = False

    @classmethod
    def from_session(cls, session: SignupSession) -> "SignupSessionResponse":
        staged = session.staged
        return cls(
            signup_id=session.signup_id,
            state=session.state.value,
            channel=session.channel.value if session.channel else None,
            email=mask_email(staged.email) if staged else None,
            mobile_number=format_phone_for_display(staged.mobile_number) if staged else None,
            product_id=staged.product_id if staged else None,
            resend_after_seconds=session.seconds_until_resend(),
            profile_degraded=session.profile_degraded,
        )


class SignupOTPResponse(BaseModel):
    session: SignupSessionResponse
    otp: OTPSentResponse


class SignupCompleteResponse(BaseModel):
    """
    Returned once the code is accepted. `profile_complete` is False when the
    profile could not be saved; the account exists either way.
    """
    session: SignupSessionResponse
    auth: Optional[AuthResponse] = None
    user_id: str
    profile_complete: bool


class PasswordSignupResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    auth: Optional[AuthResponse] = None
    message: str
