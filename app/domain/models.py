"""
Core domain models
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field
from app.domain.enums import OTPChannel, OTPIntent, SignupState


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============= Signup Models =============

class SignupForm(BaseModel):
    """
    Raw signup form as typed by the user.
    Fields are plain strings so local validation can report every rule itself.
    """
    product_id: str = ""
    full_name: str = ""
    mobile_number: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class TempUserData(BaseModel):
    """Validated signup payload awaiting OTP confirmation (not yet a server entity)"""
    product_id: str
    full_name: str
    mobile_number: str  # Normalized, e.g. +919876543210
    email: str
    password: str

    def identifier_for(self, channel: OTPChannel) -> str:
        return self.email if channel == OTPChannel.EMAIL else self.mobile_number


class SignupSession(BaseModel):
    """
    Explicit state threaded through every signup transition.

    `generation` increases on each transition so a provider response that
    lands after the user went back (or moved on) can be recognised and dropped.
    """
    signup_id: str = Field(default_factory=lambda: uuid4().hex)
    state: SignupState = SignupState.FORM_ENTRY
    channel: Optional[OTPChannel] = None
    staged: Optional[TempUserData] = None
    generation: int = 0
    otp_sent_at: Optional[datetime] = None
    resend_available_at: Optional[datetime] = None
    user_id: Optional[str] = None
    profile_degraded: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def advance(self, state: SignupState) -> "SignupSession":
        """Copy of this session moved to `state`"""
        return self.model_copy(update={
            "state": state,
            "generation": self.generation + 1,
            "updated_at": utc_now(),
        })

    def seconds_until_resend(self, now: Optional[datetime] = None) -> int:
        if not self.resend_available_at:
            return 0
        remaining = (self.resend_available_at - (now or utc_now())).total_seconds()
        return max(0, int(remaining + 0.999))


# ============= OTP Models =============

class SendReceipt(BaseModel):
    """Acknowledgement that an OTP was dispatched. Never contains the code."""
    channel: OTPChannel
    intent: OTPIntent
    destination: str  # Masked for display
    sent_at: datetime = Field(default_factory=utc_now)


class AuthSession(BaseModel):
    """Tokens issued by the identity provider"""
    access_token: str
    refresh_token: str
    expires_in: int = 3600
    expires_at: Optional[int] = None


class VerifiedUser(BaseModel):
    """Result of a successful OTP verification"""
    user_id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    session: Optional[AuthSession] = None


# ============= Profile Models =============

class Product(BaseModel):
    id: str
    name: str
    is_active: bool = True


class Profile(BaseModel):
    """One row of user_profiles, keyed 1:1 by the auth user id"""
    id: str
    full_name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    product_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReconciliationResult(BaseModel):
    """Outcome of a best-effort profile reconciliation"""
    user_id: str
    attempts: int
    profile: Optional[Profile] = None
    degraded: bool = False
    phone_dropped: bool = False
    error: Optional[str] = None
