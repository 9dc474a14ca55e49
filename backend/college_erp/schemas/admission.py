"""
Admission Schemas - Request/Response models for the admission workflow
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from college_erp.models import AdmissionStatus


class AdmissionCreate(BaseModel):
    """Open an admission for a student in a course"""
    student_id: str = Field(..., description="Student ID")
    course_id: str = Field(..., description="Course ID")


class AdmissionStatusUpdate(BaseModel):
    """
    Request a status transition

    `status` stays a plain string so that an unknown value reaches the
    state machine and is reported as an invalid transition.
    """
    status: str = Field(..., min_length=1, description="Target status")
    notes: Optional[str] = Field(None, description="Reason stored on the history row")

    @field_validator('status')
    @classmethod
    def uppercase_status(cls, v):
        return v.strip().upper()


class AdmissionResponse(BaseModel):
    id: str
    student_id: str
    course_id: str
    status: AdmissionStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdmissionHistoryResponse(BaseModel):
    id: str
    from_status: AdmissionStatus
    to_status: AdmissionStatus
    changed_by_id: Optional[str] = None
    notes: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class AdmissionDetailResponse(AdmissionResponse):
    history: List[AdmissionHistoryResponse] = []


class EnrollmentOutcomeResponse(BaseModel):
    """What the enrollment cascade did after a confirmation"""
    student_activated: bool
    semester_auto_assigned: bool
    student_semester_id: Optional[str] = None
    skipped_reason: Optional[str] = None


class AdmissionTransitionResponse(BaseModel):
    admission: AdmissionResponse
    from_status: AdmissionStatus
    to_status: AdmissionStatus
    history_id: str
    enrollment: Optional[EnrollmentOutcomeResponse] = None
    cascade_error: Optional[str] = None
