"""
Authentication schemas
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from app.domain.models import SendReceipt, VerifiedUser


# ============================================================================
# LOGIN REQUESTS
# ============================================================================

class LoginRequest(BaseModel):
    """Password login with either an email address or a mobile number"""
    email_or_phone: str = Field(
        ...,
        examples=["farmer@example.com", "9876543210"],
        description="Email address, or a 10-digit mobile number (+91 is added automatically)"
    )
    password: str = Field(..., examples=["secret123"])

    model_config = {
        "json_schema_extra": {
            "example": {
                "email_or_phone": "9876543210",
                "password": "secret123"
            }
        }
    }


class LoginOTPRequest(BaseModel):
    """Ask for a one-time code to sign in to an existing account"""
    email_or_phone: str = Field(..., examples=["farmer@example.com", "9876543210"])

    model_config = {
        "json_schema_extra": {
            "example": {
                "email_or_phone": "farmer@example.com"
            }
        }
    }


class VerifyLoginOTPRequest(BaseModel):
    """Verify a login OTP"""
    email_or_phone: str = Field(..., examples=["farmer@example.com"])
    token: str = Field(..., examples=["123456"], description="6-digit OTP code")

    model_config = {
        "json_schema_extra": {
            "example": {
                "email_or_phone": "farmer@example.com",
                "token": "123456"
            }
        }
    }


class RefreshTokenRequest(BaseModel):
    """Refresh token request"""
    refresh_token: str = Field(..., examples=["v1.MR45tLN-Io..."])


# ============================================================================
# AUTHENTICATION RESPONSES
# ============================================================================

class UserResponse(BaseModel):
    """User information response"""
    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    user_metadata: Optional[dict] = None
    has_profile: bool = False


class AuthResponse(BaseModel):
    """Authentication response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    expires_in: int
    expires_at: Optional[int] = None

    @classmethod
    def from_verified(cls, verified: VerifiedUser) -> "AuthResponse":
        session = verified.session
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            user_id=verified.user_id,
            email=verified.email,
            phone=verified.phone,
            expires_in=session.expires_in,
            expires_at=session.expires_at,
        )


class OTPSentResponse(BaseModel):
    """An OTP was sent; the code itself is never returned"""
    message: str
    channel: str
    destination: str
    sent_at: datetime
    resend_after_seconds: int = 0

    @classmethod
    def from_receipt(cls, receipt: SendReceipt, resend_after_seconds: int = 0) -> "OTPSentResponse":
        return cls(
            message=f"Verification code sent to {receipt.destination}",
            channel=receipt.channel.value,
            destination=receipt.destination,
            sent_at=receipt.sent_at,
            resend_after_seconds=resend_after_seconds,
        )
