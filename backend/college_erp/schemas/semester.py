"""
Semester Progression Schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from college_erp.models import StudentSemesterStatus


class SemesterAssign(BaseModel):
    """Seat a student in a semester"""
    semester_id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    fee_paid: bool = False


class SemesterStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, description="ONGOING, COMPLETED, FAILED or PROMOTED")
    fee_paid: Optional[bool] = None


class BulkStatusUpdate(BaseModel):
    student_ids: List[str] = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    fee_paid: Optional[bool] = None


class AutoAssignRequest(BaseModel):
    session_id: Optional[str] = Field(None, description="Only students of this academic session")
    min_semester_number: Optional[int] = Field(
        None, ge=1, description="Only students with at least this many completed semesters"
    )


class StudentSemesterResponse(BaseModel):
    id: str
    student_id: str
    semester_id: str
    status: StudentSemesterStatus
    fee_paid: bool
    start_date: datetime
    end_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgressionResponse(BaseModel):
    """What the completion cascade did"""
    promoted: bool
    passed_out: bool
    next_semester_id: Optional[str] = None
    student_semester_id: Optional[str] = None
    skipped_reason: Optional[str] = None


class StatusChangeResponse(BaseModel):
    student_semester: StudentSemesterResponse
    previous_status: StudentSemesterStatus
    progression: Optional[ProgressionResponse] = None


class BulkStatusResponse(BaseModel):
    updated: int
    skipped: int
    promoted: int
    passed_out: int
    skipped_student_ids: List[str]
    errors: Dict[str, str]


class AutoAssignResponse(BaseModel):
    semester_id: str
    semester_number: int
    considered: int
    assigned_count: int
    assigned: List[StudentSemesterResponse]


class PromotionResponse(BaseModel):
    from_semester_id: str
    to_semester_id: str
    to_semester_number: int
    promoted_count: int
    skipped_student_ids: List[str]
    promoted: List[StudentSemesterResponse]
