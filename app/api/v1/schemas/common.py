"""
Shared response bodies
"""
from pydantic import BaseModel
from typing import Optional, List


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Body of every AuthFlowError; violations only for form validation failures"""
    detail: str
    error_code: Optional[str] = None
    violations: Optional[List[str]] = None
