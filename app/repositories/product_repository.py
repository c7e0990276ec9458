"""
Product Repository

Read-only access to the products table. The public read policy only exposes
active products, the explicit is_active filter keeps admin clients honest too.
"""
import asyncio
from typing import Optional, Dict, Any
from supabase import Client
from app.repositories.base import BaseRepository, first_row
import logging

logger = logging.getLogger(__name__)


class ProductRepository(BaseRepository):
    """Repository for product lookups during signup"""

    def __init__(self, supabase: Client):
        super().__init__(supabase, "products")

    async def find_active(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Return the active product with this ID, or None"""
        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.table(self.table_name)
                .select("id, name, is_active")
                .eq("id", product_id)
                .eq("is_active", True)
                .limit(1)
                .execute()
            )
            return first_row(response)
        except Exception as e:
            logger.error(f"Error looking up product {product_id}: {str(e)}")
            raise
