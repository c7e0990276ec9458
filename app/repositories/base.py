"""
Base repository shared by the profile and product tables
"""
import asyncio
import logging
from typing import Optional, Dict, Any, TypeVar, Generic
from supabase import Client

T = TypeVar('T')
logger = logging.getLogger(__name__)


def first_row(response: Any) -> Optional[Dict[str, Any]]:
    """First row of a PostgREST response, or None when nothing matched"""
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


class BaseRepository(Generic[T]):
    """
    Single-table access keyed by the ``id`` column.

    supabase-py is synchronous, so the async helpers push each query to a
    worker thread instead of stalling the event loop.
    """

    def __init__(self, supabase: Client, table_name: str):
        self.supabase = supabase
        self.table_name = table_name

    async def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.table(self.table_name).select("*").eq("id", record_id).execute()
            )
            return first_row(response)
        except Exception as e:
            logger.error(f"Error fetching {record_id} from {self.table_name}: {str(e)}")
            raise

    async def update(self, record_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update the row and return it, or None when the id is unknown"""
        try:
            logger.debug(f"Updating {self.table_name} id={record_id} fields={sorted(data)}")
            response = await asyncio.to_thread(
                lambda: self.supabase.table(self.table_name).update(data).eq("id", record_id).execute()
            )
            return first_row(response)
        except Exception as e:
            logger.error(f"Error updating {record_id} in {self.table_name}: {str(e)}")
            raise
