"""
Identity provider error classification.

Maps Supabase auth failures onto the domain error taxonomy. Structured error
codes (AuthApiError.code) are checked first; message substring matching is a
fallback for provider versions and transports that only expose a message.
"""
from typing import Optional
import logging

import httpx

from app.domain.enums import OTPIntent
from app.domain.exceptions import (
    AuthFlowError,
    AuthProviderError,
    SignupDisabled,
    AlreadyRegistered,
    UserNotFound,
    SmsProviderUnavailable,
    TokenExpired,
    InvalidToken,
    ChannelNotConfirmed,
    InvalidCredentials,
    NetworkFailure,
)

logger = logging.getLogger(__name__)

# Operation names used by callers
SEND = "send"
VERIFY = "verify"
SIGN_IN = "sign_in"

# Message signatures of transient transport failures
TRANSIENT_SIGNATURES = (
    "failed to fetch",
    "network changed",
    "err_network_changed",
    "retryable fetch error",
    "authretryablefetcherror",
    "typeerror",
    "connection reset",
    "connection refused",
    "timed out",
)

TRANSIENT_ERROR_TYPES = (
    "AuthRetryableError",
    "AuthRetryableFetchError",
)

_CODE_MAP = {
    "signup_disabled": SignupDisabled,
    "otp_disabled": SignupDisabled,
    "email_provider_disabled": SignupDisabled,
    "user_already_exists": AlreadyRegistered,
    "email_exists": AlreadyRegistered,
    "phone_exists": AlreadyRegistered,
    "user_not_found": UserNotFound,
    "sms_send_failed": SmsProviderUnavailable,
    "phone_provider_disabled": SmsProviderUnavailable,
    "otp_expired": TokenExpired,
    "email_not_confirmed": ChannelNotConfirmed,
    "phone_not_confirmed": ChannelNotConfirmed,
    "invalid_credentials": InvalidCredentials,
}


def _error_message(exc: BaseException) -> str:
    return str(getattr(exc, "message", None) or exc) or type(exc).__name__


def _error_code(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    return code if isinstance(code, str) else None


def is_transient_network_error(exc: BaseException) -> bool:
    """True when the failure looks like a dropped or flaky connection"""
    if isinstance(exc, NetworkFailure):
        return True
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if type(exc).__name__ in TRANSIENT_ERROR_TYPES:
        return True

    haystack = f"{type(exc).__name__} {_error_message(exc)}".lower()
    return any(signature in haystack for signature in TRANSIENT_SIGNATURES)


def _match_message(message: str, operation: str, intent: Optional[OTPIntent]) -> Optional[type]:
    text = message.lower()

    if operation == VERIFY:
        if "expired" in text:
            return TokenExpired
        if "not confirmed" in text:
            return ChannelNotConfirmed
        if "invalid" in text or "token" in text:
            return InvalidToken
        return None

    if operation == SIGN_IN:
        if "invalid login credentials" in text or "invalid credentials" in text:
            return InvalidCredentials
        if "not confirmed" in text:
            return ChannelNotConfirmed
        return None

    # SEND
    if "signups not allowed" in text or "signup is disabled" in text or "signups are disabled" in text:
        # With should_create_user=False the provider refuses unknown users this way
        return UserNotFound if intent == OTPIntent.LOGIN else SignupDisabled
    if "already registered" in text or "already exists" in text:
        return AlreadyRegistered
    if "user not found" in text:
        return UserNotFound
    if "sms" in text or "phone provider" in text or "twilio" in text:
        return SmsProviderUnavailable
    return None


def classify_provider_error(
    exc: BaseException,
    operation: str,
    intent: Optional[OTPIntent] = None,
) -> AuthFlowError:
    """
    Translate a provider exception into a domain error.

    Unmatched errors become AuthProviderError with the provider's own message.
    UserNotFound is only produced for login intent; signup sends never report it.
    """
    if isinstance(exc, AuthFlowError):
        return exc

    if is_transient_network_error(exc):
        return NetworkFailure()

    message = _error_message(exc)
    error_class = _CODE_MAP.get(_error_code(exc) or "")

    if error_class is None:
        error_class = _match_message(message, operation, intent)

    if operation == SEND:
        if error_class is SignupDisabled and intent == OTPIntent.LOGIN:
            error_class = UserNotFound
        elif error_class is UserNotFound and intent != OTPIntent.LOGIN:
            error_class = None

    if error_class is None:
        logger.debug(f"Unclassified provider error during {operation}: {message}")
        return AuthProviderError(message)

    return error_class()
