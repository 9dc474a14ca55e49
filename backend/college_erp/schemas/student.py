"""
Student Schemas
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from college_erp.models import StudentStatus


def normalize_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, description="Unique student email")
    phone: Optional[str] = Field(None, min_length=10, max_length=15)
    course_id: str = Field(..., description="Course the student is admitted to")
    session_id: Optional[str] = Field(None, description="Academic session")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class StudentResponse(BaseModel):
    id: str
    reg_no: str
    name: str
    email: str
    phone: Optional[str] = None
    course_id: str
    session_id: Optional[str] = None
    status: StudentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class StudentUpdate(BaseModel):
    """Contact details and session; status and course follow the lifecycle workflows"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, min_length=10, max_length=15)
    session_id: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        return normalize_email(v)
