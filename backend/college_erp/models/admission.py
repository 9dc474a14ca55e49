from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint
from datetime import datetime
import enum

from college_erp.core.database import Base
from college_erp.core.types import GUID, generate_uuid


class AdmissionStatus(str, enum.Enum):
    """Admission workflow states"""
    INITIATED = "INITIATED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


# CONFIRMED and CANCELLED are terminal
ADMISSION_TRANSITIONS = {
    AdmissionStatus.INITIATED: frozenset({AdmissionStatus.PAYMENT_PENDING, AdmissionStatus.CANCELLED}),
    AdmissionStatus.PAYMENT_PENDING: frozenset({AdmissionStatus.CONFIRMED, AdmissionStatus.CANCELLED}),
    AdmissionStatus.CONFIRMED: frozenset(),
    AdmissionStatus.CANCELLED: frozenset(),
}


class Admission(Base):
    """One student's application to one course"""
    __tablename__ = "admissions"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_admissions_student_course"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False, index=True)
    status = Column(SQLEnum(AdmissionStatus), default=AdmissionStatus.INITIATED, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Admission {self.id} ({self.status})>"


class AdmissionHistory(Base):
    """Append-only record of one admission status change"""
    __tablename__ = "admission_history"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    admission_id = Column(GUID, ForeignKey("admissions.id"), nullable=False, index=True)
    from_status = Column(SQLEnum(AdmissionStatus), nullable=False)
    to_status = Column(SQLEnum(AdmissionStatus), nullable=False)
    changed_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    notes = Column(String(500), nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AdmissionHistory {self.from_status} -> {self.to_status}>"
