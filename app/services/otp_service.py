"""
OTP service: send, resend and verify one-time passcodes.

Two channels (email, phone) and two intents:
- signup: the provider may create a new identity
- login: the identifier must already belong to a user

Transient network failures are retried with linear backoff
(base_delay * attempt, 3 attempts in total). Everything else propagates on
the first failure, classified into the domain error taxonomy.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from supabase import Client

from app.domain.enums import OTPChannel, OTPIntent
from app.domain.exceptions import AuthProviderError, InvalidToken, ValidationError
from app.domain.models import AuthSession, SendReceipt, VerifiedUser
from app.services.provider_errors import (
    SEND,
    VERIFY,
    classify_provider_error,
    is_transient_network_error,
)
from app.utils.validators import (
    DEFAULT_COUNTRY_CODE,
    format_phone_for_display,
    is_valid_email,
    mask_email,
    normalize_phone,
    validate_otp_code,
)

logger = logging.getLogger(__name__)

# Defaults
MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0


async def call_with_network_retry(
    func: Callable[[], Any],
    description: str,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Run a blocking provider call in a worker thread, retrying transient
    network failures with linear backoff. The last error is re-raised as-is.
    """
    attempt = 1
    while True:
        try:
            return await asyncio.to_thread(func)
        except Exception as e:
            if not is_transient_network_error(e) or attempt >= max_attempts:
                raise
            delay = base_delay * attempt
            logger.warning(
                f"{description} failed with a network error (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)
            attempt += 1


class OTPService:
    """Coordinates OTP delivery and verification with the identity provider"""

    def __init__(
        self,
        supabase: Client,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        country_code: str = DEFAULT_COUNTRY_CODE,
        email_redirect_to: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize OTPService.

        Args:
            supabase: Supabase client (publishable key)
            max_attempts: Total attempts for transient network failures
            base_delay: Seconds; the n-th retry waits base_delay * n
            country_code: Prefix for bare 10-digit mobile numbers
            email_redirect_to: Magic-link target embedded in OTP emails
            sleep: Backoff sleeper, replaceable in tests
        """
        self.supabase = supabase
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.country_code = country_code
        self.email_redirect_to = email_redirect_to
        self._sleep = sleep

    def normalize_identifier(self, channel: OTPChannel, identifier: str) -> str:
        """Canonical form of an email or phone identifier, or raise"""
        if channel == OTPChannel.EMAIL:
            email = (identifier or "").strip()
            if not is_valid_email(email):
                raise ValidationError("Please enter a valid email address")
            return email
        return normalize_phone(identifier, self.country_code)

    def _mask(self, channel: OTPChannel, identifier: str) -> str:
        if channel == OTPChannel.EMAIL:
            return mask_email(identifier)
        return format_phone_for_display(identifier, self.country_code)

    async def send_otp(
        self,
        channel: OTPChannel,
        identifier: str,
        intent: OTPIntent,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendReceipt:
        """
        Send a one-time passcode.

        Args:
            channel: email or phone
            identifier: Email address or phone number (any accepted shape)
            intent: signup may create the user, login may not
            metadata: Carried into the new user's metadata bag (signup only)

        Returns:
            SendReceipt with a masked destination

        Raises:
            ValidationError / InvalidPhoneFormat: before any network call
            SignupDisabled, AlreadyRegistered, UserNotFound,
            SmsProviderUnavailable, NetworkFailure, AuthProviderError
        """
        target = self.normalize_identifier(channel, identifier)

        options: Dict[str, Any] = {"should_create_user": intent == OTPIntent.SIGNUP}
        if intent == OTPIntent.SIGNUP and metadata:
            options["data"] = metadata
        if channel == OTPChannel.EMAIL and self.email_redirect_to:
            options["email_redirect_to"] = self.email_redirect_to

        credentials = {channel.value: target, "options": options}

        try:
            await call_with_network_retry(
                lambda: self.supabase.auth.sign_in_with_otp(credentials),
                description=f"OTP send ({channel.value}, {intent.value})",
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
            )
        except Exception as e:
            error = classify_provider_error(e, SEND, intent)
            logger.error(f"OTP send via {channel.value} failed for {self._mask(channel, target)}: {e}")
            raise error from e

        logger.info(f"OTP sent via {channel.value} to {self._mask(channel, target)} ({intent.value})")

        return SendReceipt(
            channel=channel,
            intent=intent,
            destination=self._mask(channel, target),
        )

    async def resend_otp(
        self,
        channel: OTPChannel,
        identifier: str,
        intent: OTPIntent,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SendReceipt:
        """Send again. Cooldown between sends is the caller's concern."""
        return await self.send_otp(channel, identifier, intent, metadata)

    async def verify_otp(
        self,
        channel: OTPChannel,
        identifier: str,
        code: str,
        intent: OTPIntent,
    ) -> VerifiedUser:
        """
        Verify a one-time passcode.

        The code is checked locally first; anything but exactly 6 digits is
        rejected without calling the provider.

        Raises:
            InvalidOTPCode, InvalidPhoneFormat, ValidationError: local
            TokenExpired, InvalidToken, ChannelNotConfirmed, NetworkFailure,
            AuthProviderError
        """
        token = validate_otp_code(code)
        target = self.normalize_identifier(channel, identifier)

        params = {channel.value: target, "token": token, "type": channel.verify_type}

        try:
            response = await call_with_network_retry(
                lambda: self.supabase.auth.verify_otp(params),
                description=f"OTP verify ({channel.value}, {intent.value})",
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
            )
        except Exception as e:
            error = classify_provider_error(e, VERIFY, intent)
            logger.warning(f"OTP verification via {channel.value} failed for {self._mask(channel, target)}: {e}")
            raise error from e

        user = getattr(response, "user", None)
        if not user:
            raise InvalidToken()

        session = getattr(response, "session", None)
        auth_session = None
        if session:
            auth_session = AuthSession(
                access_token=session.access_token,
                refresh_token=session.refresh_token,
                expires_in=session.expires_in or 3600,
                expires_at=session.expires_at,
            )

        if not getattr(user, "id", None):
            raise AuthProviderError("Verification succeeded but no user was returned")

        logger.info(f"OTP verified via {channel.value} for user {user.id} ({intent.value})")

        return VerifiedUser(
            user_id=str(user.id),
            email=getattr(user, "email", None),
            phone=getattr(user, "phone", None),
            session=auth_session,
        )
