"""
Custom exceptions for domain-specific errors

Every error carries a short user-facing message, a stable error_code for the
front end and the HTTP status the API answers with.
"""
from typing import Optional


class AuthFlowError(Exception):
    """Base class for registration and authentication errors"""

    error_code = "auth_error"
    status_code = 400
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============= Local validation (never reaches the network) =============

class ValidationError(AuthFlowError):
    """
    Raised when local form validation fails.
    Only the first violated rule is surfaced; the full list is kept on the error.
    """

    error_code = "validation_error"
    status_code = 422
    default_message = "Please check the form and try again."

    def __init__(self, message: Optional[str] = None, violations: Optional[list] = None):
        self.violations = list(violations or ([message] if message else []))
        super().__init__(message)


class InvalidOTPCode(ValidationError):
    """Raised when an OTP code is not exactly 6 digits"""

    error_code = "invalid_otp_code"
    default_message = "Please enter a valid 6-digit OTP"


class InvalidPhoneFormat(AuthFlowError):
    """Raised when a phone number cannot be reduced to canonical +91 form"""

    error_code = "invalid_phone_format"
    status_code = 422
    default_message = "Please enter a valid 10-digit mobile number"


class InvalidProductId(AuthFlowError):
    """
    Raised when a product ID does not resolve to an active product.
    Not found, inactive and lookup failures are reported the same way.
    """

    error_code = "invalid_product_id"
    default_message = "Invalid Product ID. Please check your Product ID and try again."


# ============= Identity provider errors =============

class AuthProviderError(AuthFlowError):
    """Unclassified identity provider failure; carries the provider's message"""

    error_code = "provider_error"


class SignupDisabled(AuthProviderError):
    error_code = "signup_disabled"
    status_code = 403
    default_message = "New signups are currently disabled. Please contact support."


class AlreadyRegistered(AuthProviderError):
    error_code = "already_registered"
    status_code = 409
    default_message = "An account with this email or mobile number already exists. Please sign in instead."


class UserNotFound(AuthProviderError):
    """Login-intent only: no identity exists for the identifier"""

    error_code = "user_not_found"
    status_code = 404
    default_message = "No account found. Please sign up first."


class SmsProviderUnavailable(AuthProviderError):
    error_code = "sms_unavailable"
    status_code = 503
    default_message = "SMS verification is currently unavailable. Please use email verification instead."


class TokenExpired(AuthProviderError):
    error_code = "token_expired"
    default_message = "Your verification code has expired. Please request a new one."


class InvalidToken(AuthProviderError):
    error_code = "invalid_token"
    default_message = "Invalid verification code. Please check the code and try again."


class ChannelNotConfirmed(AuthProviderError):
    error_code = "channel_not_confirmed"
    status_code = 403
    default_message = "Please confirm your email or mobile number before continuing."


class InvalidCredentials(AuthProviderError):
    error_code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials. Please check your email/mobile and password."


class NetworkFailure(AuthProviderError):
    """Transient transport failure; raised only after retries are exhausted"""

    error_code = "network_failure"
    status_code = 503
    default_message = "Network error. Please check your internet connection and try again."


# ============= Signup flow =============

class SignupSessionNotFound(AuthFlowError):
    error_code = "signup_not_found"
    status_code = 404
    default_message = "Your signup session has expired. Please start again."


class InvalidSignupTransition(AuthFlowError):
    """Raised when a step is attempted from a state that does not allow it"""

    error_code = "invalid_signup_step"
    status_code = 409

    def __init__(self, current_state: str, action: str):
        self.current_state = current_state
        self.action = action
        super().__init__(f"Cannot {action} while signup is {current_state}")


class ProfileReconciliationFailure(AuthFlowError):
    """
    Soft failure: logged by the reconciliation service, never raised to callers.
    The authenticated identity is valid even when the profile is incomplete.
    """

    error_code = "profile_incomplete"
    status_code = 500
    default_message = "Your account was created but some profile details could not be saved."
