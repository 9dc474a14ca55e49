"""
Common response schemas shared by every endpoint
"""

from pydantic import BaseModel
from typing import Any, Optional


class ApiResponse(BaseModel):
    """Success envelope: {"status": "success", "message": ..., "data": ...}"""
    status: str = "success"
    message: Optional[str] = None
    data: Any = None


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict = {}


class ErrorResponse(BaseModel):
    """Error envelope produced by the CollegeERPError handler"""
    status: str = "error"
    error: ErrorBody


def success(data: Any = None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(message=message, data=data)
