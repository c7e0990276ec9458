"""
Product endpoints
"""
from fastapi import APIRouter, Depends
import logging

from app.api.v1.dependencies import get_product_service
from app.api.v1.schemas.common import ErrorResponse
from app.api.v1.schemas.profile import ProductValidationResponse
from app.services.product_service import ProductService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "/{product_id}/validate",
    response_model=ProductValidationResponse,
    summary="Validate Product ID",
    description="Check that a product ID printed on an AgriCure kit is active.",
    responses={400: {"model": ErrorResponse, "description": "Invalid product ID"}}
)
async def validate_product(
    product_id: str,
    product_service: ProductService = Depends(get_product_service)
):
    product = await product_service.validate_product_id(product_id)
    return ProductValidationResponse(product_id=product.id, name=product.name)
