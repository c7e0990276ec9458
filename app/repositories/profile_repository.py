"""
Profile Repository

Handles the user_profiles table. Writes go through the upsert_user_profile
database function, which merges field by field (COALESCE) so that neither the
signup trigger nor a client-side reconciliation can blank out the other's data.
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from supabase import Client
from app.repositories.base import BaseRepository, first_row
import logging

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "email", "phone_number", "product_id")
UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"


def is_phone_conflict(exc: BaseException) -> bool:
    """True when a write failed on the phone_number unique index or format check"""
    code = str(getattr(exc, "code", "") or "")
    message = str(getattr(exc, "message", None) or exc).lower()
    return code in (UNIQUE_VIOLATION, CHECK_VIOLATION) and "phone_number" in message


class ProfileRepository(BaseRepository):
    """Repository for user profiles"""

    def __init__(self, supabase: Client):
        super().__init__(supabase, "user_profiles")

    def upsert_merge(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Insert or merge a profile row keyed by user id.

        None values never overwrite existing data. Blocking; callers run it in
        a worker thread.
        """
        params = {f"p_{name}": fields.get(name) for name in PROFILE_FIELDS}
        params["p_id"] = user_id

        response = self.supabase.rpc("upsert_user_profile", params).execute()

        return first_row(response)

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update only the non-null profile fields"""
        data = {k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None}
        if not data:
            return await self.get_by_id(user_id)
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        return await self.update(user_id, data)
