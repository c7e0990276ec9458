"""
Product validation gate for signup
"""
import logging
from supabase import Client

from app.domain.exceptions import InvalidProductId
from app.domain.models import Product
from app.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class ProductService:
    """Checks that a signup carries the ID of an active product"""

    def __init__(self, supabase: Client):
        self.products = ProductRepository(supabase)

    async def validate_product_id(self, product_id: str) -> Product:
        """
        Resolve an active product or raise InvalidProductId.

        Not found, inactive and lookup errors all raise the same error so the
        user only ever learns that the ID was not accepted.
        """
        product_id = (product_id or "").strip()
        if not product_id:
            raise InvalidProductId()

        try:
            row = await self.products.find_active(product_id)
        except Exception as e:
            logger.warning(f"Product lookup failed for {product_id}: {e}")
            raise InvalidProductId() from e

        if not row:
            logger.info(f"Rejected signup with unknown or inactive product {product_id}")
            raise InvalidProductId()

        return Product(**row)
