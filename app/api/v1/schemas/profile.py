"""
Profile and product schemas
"""
from pydantic import BaseModel, Field
from typing import Optional


class UpdateProfileRequest(BaseModel):
    """Partial profile update; omitted or null fields keep their stored value"""
    full_name: Optional[str] = Field(None, min_length=1, max_length=100, examples=["Ramesh Kumar"])
    phone_number: Optional[str] = Field(None, examples=["9876543210"])
    product_id: Optional[str] = Field(None, examples=["AGRICURE-002"])

    model_config = {
        "json_schema_extra": {
            "example": {
                "full_name": "Ramesh Kumar",
                "phone_number": "9876543210"
            }
        }
    }


class ProductValidationResponse(BaseModel):
    product_id: str
    name: str
    valid: bool = True
