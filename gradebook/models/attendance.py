from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.database import Base

ATTENDANCE_STATUSES = (
    "present",
    "late_justified",
    "late_unjustified",
    "absent_justified",
    "absent_unjustified",
)

# Attendance Record model
class AttendanceRecord(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(30), nullable=False)
    arrival_time = Column(String(10))
    justification = Column(Text)
    notes = Column(Text)
    lesson_number = Column(Integer, default=1)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False, default="general")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            f"status IN ({', '.join(repr(status) for status in ATTENDANCE_STATUSES)})",
            name="check_attendance_status",
        ),
        UniqueConstraint(
            "student_id", "date", "grade_level", "subject_area", "academic_period_id",
            name="uq_attendance_student_day",
        ),
    )

    # Relationships
    student = relationship("Student", back_populates="attendance_records")
