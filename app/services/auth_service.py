"""
Session and authentication facade.

Thin pass-through to Supabase auth for password login, the traditional
email/password signup, logout, token refresh and metadata updates. OTP login
goes through OTPService with the login intent.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from supabase import Client

from app.domain.enums import OTPChannel, OTPIntent
from app.domain.exceptions import AuthProviderError, InvalidCredentials, ValidationError
from app.domain.models import AuthSession, SendReceipt, SignupForm, VerifiedUser
from app.services.otp_service import OTPService
from app.services.product_service import ProductService
from app.services.provider_errors import SIGN_IN, SEND, classify_provider_error
from app.utils.validators import (
    DEFAULT_COUNTRY_CODE,
    login_identifier_violation,
    normalize_phone,
    signup_form_violations,
)

logger = logging.getLogger(__name__)


def route_login_identifier(
    email_or_phone: str,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> Tuple[OTPChannel, str]:
    """
    Decide which sign-in path an identifier takes.

    Anything containing "@" is an email; everything else is a phone number,
    normalized to +<cc> form (InvalidPhoneFormat when it cannot be).
    """
    value = (email_or_phone or "").strip()
    if "@" in value:
        return OTPChannel.EMAIL, value
    return OTPChannel.PHONE, normalize_phone(value, country_code)


def _to_verified_user(response: Any) -> VerifiedUser:
    user = getattr(response, "user", None)
    session = getattr(response, "session", None)
    if not user:
        raise InvalidCredentials()

    auth_session = None
    if session:
        auth_session = AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in or 3600,
            expires_at=session.expires_at,
        )

    return VerifiedUser(
        user_id=str(user.id),
        email=getattr(user, "email", None),
        phone=getattr(user, "phone", None),
        session=auth_session,
    )


class AuthService:
    """Login, logout and account helpers around Supabase auth"""

    def __init__(
        self,
        supabase: Client,
        admin_client: Optional[Client] = None,
        otp_service: Optional[OTPService] = None,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.supabase = supabase
        self.admin_client = admin_client or supabase
        self.otp_service = otp_service or OTPService(supabase, country_code=country_code)
        self.country_code = country_code

    async def sign_in(self, email_or_phone: str, password: str) -> VerifiedUser:
        """Password login by email or phone"""
        violation = login_identifier_violation(email_or_phone, password)
        if violation:
            raise ValidationError(violation)

        channel, identifier = route_login_identifier(email_or_phone, self.country_code)
        credentials = {channel.value: identifier, "password": password}

        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.auth.sign_in_with_password(credentials)
            )
        except Exception as e:
            logger.warning(f"Password sign-in via {channel.value} failed: {e}")
            raise classify_provider_error(e, SIGN_IN) from e

        verified = _to_verified_user(response)
        logger.info(f"User {verified.user_id} signed in with password via {channel.value}")
        return verified

    async def send_login_otp(self, email_or_phone: str) -> SendReceipt:
        """OTP login for an existing account (never creates a user)"""
        channel, identifier = route_login_identifier(email_or_phone, self.country_code)
        return await self.otp_service.send_otp(channel, identifier, OTPIntent.LOGIN)

    async def verify_login_otp(self, email_or_phone: str, code: str) -> VerifiedUser:
        channel, identifier = route_login_identifier(email_or_phone, self.country_code)
        return await self.otp_service.verify_otp(channel, identifier, code, OTPIntent.LOGIN)

    async def sign_up(self, form: SignupForm, product_service: ProductService) -> VerifiedUser:
        """
        Traditional email/password signup, without OTP.

        Full name, product ID and phone ride along in the metadata bag, where
        the handle_new_user trigger picks them up.
        """
        violations = signup_form_violations(
            product_id=form.product_id,
            full_name=form.full_name,
            email=form.email,
            mobile_number=form.mobile_number,
            password=form.password,
            confirm_password=form.confirm_password,
        )
        if violations:
            raise ValidationError(violations[0], violations)

        phone = normalize_phone(form.mobile_number, self.country_code)
        product = await product_service.validate_product_id(form.product_id)

        payload = {
            "email": form.email.strip(),
            "password": form.password,
            "options": {
                "data": {
                    "full_name": form.full_name.strip(),
                    "product_id": product.id,
                    "phone_number": phone,
                }
            },
        }

        try:
            response = await asyncio.to_thread(lambda: self.supabase.auth.sign_up(payload))
        except Exception as e:
            logger.warning(f"Password signup failed for product {product.id}: {e}")
            raise classify_provider_error(e, SEND, OTPIntent.SIGNUP) from e

        user = getattr(response, "user", None)
        if not user:
            raise AuthProviderError("Signup did not return a user")

        logger.info(f"User {user.id} signed up with email/password")
        return _to_verified_user(response) if getattr(response, "session", None) else VerifiedUser(
            user_id=str(user.id),
            email=getattr(user, "email", None),
            phone=getattr(user, "phone", None),
        )

    async def sign_out(self, access_token: str) -> None:
        """Revoke the sessions behind this access token (and only those)"""
        try:
            await asyncio.to_thread(
                lambda: self.admin_client.auth.admin.sign_out(access_token)
            )
        except Exception as e:
            logger.error(f"Logout error: {str(e)}")
            raise classify_provider_error(e, SIGN_IN) from e

    async def get_current_user(self, access_token: str) -> Dict[str, Any]:
        """Resolve an access token to the auth user, or raise InvalidCredentials"""
        try:
            response = await asyncio.to_thread(lambda: self.supabase.auth.get_user(access_token))
        except Exception as e:
            logger.warning(f"Token validation failed: {e}")
            raise InvalidCredentials("Invalid or expired token") from e

        user = getattr(response, "user", None) if response else None
        if not user:
            raise InvalidCredentials("Invalid or expired token")

        return {
            "id": str(user.id),
            "email": user.email,
            "phone": user.phone,
            "created_at": user.created_at,
            "user_metadata": user.user_metadata or {},
        }

    async def refresh_session(self, refresh_token: str) -> VerifiedUser:
        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.auth.refresh_session(refresh_token)
            )
        except Exception as e:
            logger.warning(f"Token refresh failed: {e}")
            raise InvalidCredentials("Invalid or expired refresh token") from e
        return _to_verified_user(response)

    async def update_user_metadata(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into the user's metadata bag"""
        try:
            await asyncio.to_thread(
                lambda: self.admin_client.auth.admin.update_user_by_id(
                    user_id, {"user_metadata": fields}
                )
            )
        except Exception as e:
            logger.error(f"Failed to update metadata for user {user_id}: {e}")
            raise classify_provider_error(e, SIGN_IN) from e
