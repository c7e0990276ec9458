"""
Enumerations for domain models
"""
from enum import Enum


class OTPChannel(str, Enum):
    """Delivery channel for one-time passcodes"""
    EMAIL = "email"
    PHONE = "phone"

    @property
    def verify_type(self) -> str:
        """OTP type expected by the identity provider's verify call"""
        return "email" if self is OTPChannel.EMAIL else "sms"


class OTPIntent(str, Enum):
    """Whether an OTP may provision a new identity"""
    SIGNUP = "signup"  # May create the user
    LOGIN = "login"  # Must target an existing user


class SignupState(str, Enum):
    """Signup flow states"""
    FORM_ENTRY = "form_entry"
    PRODUCT_VALIDATING = "product_validating"
    STAGED = "staged"  # Waiting for channel selection
    OTP_PENDING = "otp_pending"
    VERIFYING = "verifying"
    RECONCILING = "reconciling"
    COMPLETE = "complete"
    ABANDONED = "abandoned"

    @property
    def accepts_input(self) -> bool:
        """False while a network round-trip is in flight"""
        return self not in (
            SignupState.PRODUCT_VALIDATING,
            SignupState.VERIFYING,
            SignupState.RECONCILING,
        )
