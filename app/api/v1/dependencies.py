"""
Service dependencies for the v1 endpoints.

Each factory builds a service from the Supabase clients, Redis and settings,
so tests can swap any of them with app.dependency_overrides.
"""
from datetime import timedelta
from fastapi import Depends
from redis.asyncio import Redis
from supabase import Client

from app.core.config import get_settings
from app.core.database import get_supabase_admin_client, get_supabase_auth_client, get_supabase_client
from app.core.redis_client import get_redis_client
from app.services.auth_service import AuthService
from app.services.otp_service import OTPService
from app.services.product_service import ProductService
from app.services.profile_service import ProfileReconciliationService, ProfileService
from app.services.signup_service import SignupService
from app.services.staging_store import SignupStagingStore


def get_staging_store(redis_client: Redis = Depends(get_redis_client)) -> SignupStagingStore:
    settings = get_settings()
    return SignupStagingStore(
        redis_client,
        ttl=timedelta(minutes=settings.SIGNUP_STAGING_TTL_MINUTES),
    )


def get_otp_service(supabase: Client = Depends(get_supabase_auth_client)) -> OTPService:
    settings = get_settings()
    return OTPService(
        supabase,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        base_delay=settings.OTP_RETRY_BASE_DELAY_SECONDS,
        country_code=settings.DEFAULT_COUNTRY_CODE,
        email_redirect_to=f"{settings.SITE_URL}/auth/callback",
    )


def get_product_service(supabase: Client = Depends(get_supabase_client)) -> ProductService:
    return ProductService(supabase)


def get_reconciliation_service(
    admin_client: Client = Depends(get_supabase_admin_client)
) -> ProfileReconciliationService:
    settings = get_settings()
    return ProfileReconciliationService(
        admin_client,
        max_attempts=settings.PROFILE_RECONCILE_ATTEMPTS,
        retry_delay=settings.PROFILE_RECONCILE_DELAY_SECONDS,
        country_code=settings.DEFAULT_COUNTRY_CODE,
    )


def get_signup_service(
    store: SignupStagingStore = Depends(get_staging_store),
    product_service: ProductService = Depends(get_product_service),
    otp_service: OTPService = Depends(get_otp_service),
    reconciler: ProfileReconciliationService = Depends(get_reconciliation_service),
) -> SignupService:
    settings = get_settings()
    return SignupService(
        store,
        product_service,
        otp_service,
        reconciler,
        resend_cooldown_seconds=settings.OTP_RESEND_COOLDOWN_SECONDS,
        country_code=settings.DEFAULT_COUNTRY_CODE,
    )


def get_auth_service(
    supabase: Client = Depends(get_supabase_auth_client),
    admin_client: Client = Depends(get_supabase_admin_client),
    otp_service: OTPService = Depends(get_otp_service),
) -> AuthService:
    return AuthService(
        supabase,
        admin_client=admin_client,
        otp_service=otp_service,
        country_code=get_settings().DEFAULT_COUNTRY_CODE,
    )


def get_profile_service(admin_client: Client = Depends(get_supabase_admin_client)) -> ProfileService:
    return ProfileService(admin_client, country_code=get_settings().DEFAULT_COUNTRY_CODE)
