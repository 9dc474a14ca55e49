"""
Subject Selection Schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from college_erp.models import SubjectType


class StudentSubjectCreate(BaseModel):
    student_id: str
    subject_id: str
    semester_id: str


class StudentSubjectBulkCreate(BaseModel):
    student_id: str
    semester_id: str
    subject_ids: List[str] = Field(..., min_length=1)


class StudentSubjectResponse(BaseModel):
    id: str
    student_id: str
    subject_id: str
    semester_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class SelectedSubjectResponse(BaseModel):
    """A pick joined with its subject"""
    id: str
    subject_id: str
    code: str
    name: str
    type: SubjectType
    credit: int
    created_at: Optional[datetime] = None


class StudentSelectionResponse(SelectedSubjectResponse):
    """A pick with the student and semester it belongs to"""
    student_id: str
    semester_id: str
