from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.database import Base

# Student model
# The roster is maintained by the student management screens; the grading
# services only read it to find the students eligible for an evaluation.
class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    student_code = Column(String(20), nullable=False)
    first_name = Column(String(100), nullable=False)
    first_surname = Column(String(100), nullable=False)
    second_surname = Column(String(100))
    grade_level = Column(String(50), nullable=False)
    # NULL or empty means the student takes every subject of the grade
    subject_area = Column(String(100))
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    attendance_records = relationship("AttendanceRecord", back_populates="student")
    assignment_grades = relationship("AssignmentGrade", back_populates="student")
