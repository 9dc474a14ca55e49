"""
Curriculum Schemas - courses, sessions, semesters, subjects
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from college_erp.models import SubjectType


class CourseCreate(BaseModel):
    code: str = Field(..., min_length=2, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    duration_years: int = Field(3, ge=1, le=6)

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.upper().strip()


class CourseResponse(BaseModel):
    id: str
    code: str
    name: str
    duration_years: int
    created_at: datetime

    class Config:
        from_attributes = True


class SessionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="e.g. 2024-27")
    start_year: int = Field(..., ge=1900, le=2200)
    end_year: int = Field(..., ge=1900, le=2200)

    @model_validator(mode='after')
    def check_years(self):
        if self.end_year < self.start_year:
            raise ValueError("end_year must not be before start_year")
        return self


class SessionResponse(BaseModel):
    id: str
    name: str
    start_year: int
    end_year: int

    class Config:
        from_attributes = True


class CurriculumCreate(BaseModel):
    semester_count: Optional[int] = Field(
        None, ge=1, le=12, description="Defaults to two semesters per year of the course"
    )


class SemesterResponse(BaseModel):
    id: str
    course_id: str
    number: int

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    code: str = Field(..., min_length=2, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    type: SubjectType
    credit: int = Field(4, ge=0, le=20)
    semester_id: str

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.upper().strip()


class SubjectResponse(BaseModel):
    id: str
    code: str
    name: str
    type: SubjectType
    credit: int
    course_id: str
    semester_id: str

    class Config:
        from_attributes = True


class SemesterDetailResponse(SemesterResponse):
    """A semester with the subjects offered in it"""
    subjects: List[SubjectResponse] = []
