"""
Profile reconciliation and profile access.

When a user is created through OTP, the handle_new_user trigger inserts a
profile from whatever the identity provider knows at that moment (often no
product id, sometimes a phone in the wrong shape). Reconciliation then merges
the staged signup data into the same row. Both writers are idempotent upserts
with null-coalescing merge, so the row converges whichever lands first.

Reconciliation never fails the signup: after the retries are used up the
failure is logged and the profile is left incomplete.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from supabase import Client

from app.domain.exceptions import ProfileReconciliationFailure
from app.domain.models import Profile, ReconciliationResult, TempUserData
from app.repositories.profile_repository import ProfileRepository, is_phone_conflict
from app.utils.validators import (
    DEFAULT_COUNTRY_CODE,
    is_storable_phone,
    normalize_phone,
    try_normalize_phone,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0


def merge_profile_fields(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Null-coalescing merge: a field takes the incoming value unless it is None,
    in which case the existing value is kept.
    """
    merged = dict(existing)
    for key, value in incoming.items():
        if value is not None:
            merged[key] = value
        else:
            merged.setdefault(key, None)
    return merged


def build_profile_payload(
    staged: TempUserData,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> Tuple[Dict[str, Any], bool]:
    """
    Profile fields for a staged signup.

    Returns (fields, phone_dropped). A phone that cannot be normalized or does
    not fit the storage format is left out rather than failing the write.
    """
    phone = try_normalize_phone(staged.mobile_number, country_code)
    phone_dropped = False
    if phone is not None and not is_storable_phone(phone):
        phone = None
    if phone is None and staged.mobile_number:
        phone_dropped = True

    fields = {
        "full_name": staged.full_name.strip() or None,
        "email": staged.email.strip() or None,
        "phone_number": phone,
        "product_id": staged.product_id.strip() or None,
    }
    return fields, phone_dropped


def build_user_metadata(staged: TempUserData, country_code: str = DEFAULT_COUNTRY_CODE) -> Dict[str, Any]:
    """Metadata bag read by the handle_new_user trigger"""
    metadata = {
        "full_name": staged.full_name.strip(),
        "product_id": staged.product_id.strip(),
    }
    phone = try_normalize_phone(staged.mobile_number, country_code)
    if phone:
        metadata["phone_number"] = phone
    return metadata


class ProfileReconciliationService:
    """Merges staged signup data into the user's profile row"""

    def __init__(
        self,
        supabase: Client,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        country_code: str = DEFAULT_COUNTRY_CODE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize ProfileReconciliationService.

        Args:
            supabase: Admin Supabase client (writes on behalf of the new user)
            max_attempts: Upsert attempts before giving up
            retry_delay: Fixed pause between attempts, in seconds
            country_code: Used to normalize the staged phone number
            sleep: Pause function, replaceable in tests
        """
        self.supabase = supabase
        self.profiles = ProfileRepository(supabase)
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.country_code = country_code
        self._sleep = sleep

    async def _update_auth_user(self, user_id: str, staged: TempUserData) -> None:
        """
        Copy the staged metadata onto the auth user and set the password chosen
        on the form, so password login works for OTP-created accounts.
        Best effort; the profile row is the source of truth.
        """
        attributes = {"user_metadata": build_user_metadata(staged, self.country_code)}
        if staged.password:
            attributes["password"] = staged.password
        try:
            await asyncio.to_thread(
                lambda: self.supabase.auth.admin.update_user_by_id(user_id, attributes)
            )
        except Exception as e:
            logger.warning(f"Failed to update auth user {user_id} (non-critical): {e}")

    async def reconcile(self, user_id: str, staged: TempUserData) -> ReconciliationResult:
        """
        Make the profile row reflect the staged signup data.

        Never raises. Returns a result flagged `degraded` when every attempt
        failed.
        """
        await self._update_auth_user(user_id, staged)

        fields, phone_dropped = build_profile_payload(staged, self.country_code)
        if phone_dropped:
            logger.warning(f"Staged phone for user {user_id} is not storable, saving profile without it")

        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                row = await asyncio.to_thread(self.profiles.upsert_merge, user_id, fields)
                if not row:
                    raise RuntimeError("Profile upsert returned no row")

                logger.info(f"Profile reconciled for user {user_id} (attempt {attempt}/{self.max_attempts})")
                return ReconciliationResult(
                    user_id=user_id,
                    attempts=attempt,
                    profile=Profile(**row),
                    phone_dropped=phone_dropped,
                )

            except Exception as e:
                last_error = e
                logger.warning(f"Profile reconciliation attempt {attempt}/{self.max_attempts} for user {user_id} failed: {e}")

                if is_phone_conflict(e) and fields.get("phone_number"):
                    # Number already taken by another profile: keep the rest of the data
                    fields = dict(fields, phone_number=None)
                    phone_dropped = True

            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        failure = ProfileReconciliationFailure()
        logger.error(
            f"{failure.message} user={user_id} attempts={self.max_attempts} last_error={last_error}"
        )
        return ReconciliationResult(
            user_id=user_id,
            attempts=self.max_attempts,
            degraded=True,
            phone_dropped=phone_dropped,
            error=str(last_error) if last_error else failure.message,
        )


class ProfileService:
    """Read and update the signed-in user's own profile"""

    def __init__(self, supabase: Client, country_code: str = DEFAULT_COUNTRY_CODE):
        self.profiles = ProfileRepository(supabase)
        self.country_code = country_code

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        row = await self.profiles.get_by_id(user_id)
        return Profile(**row) if row else None

    async def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Optional[Profile]:
        """
        Apply non-null updates. A phone number is normalized first and raises
        InvalidPhoneFormat when it cannot be.
        """
        updates = dict(fields)
        if updates.get("phone_number"):
            updates["phone_number"] = normalize_phone(updates["phone_number"], self.country_code)

        row = await self.profiles.update_fields(user_id, updates)
        return Profile(**row) if row else None
