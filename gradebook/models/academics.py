from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Text, Numeric, Float, Boolean,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.database import Base

# Assignment model (evaluation definition)
class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    due_date = Column(Date)
    max_points = Column(Numeric(8, 2), nullable=False)
    # Weight of the evaluation within the subject grade
    percentage = Column(Numeric(5, 2), nullable=False)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False)
    teacher_name = Column(String(200), default="Sistema")
    type = Column(String(50), nullable=False, default="tarea")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_points > 0", name="check_assignment_max_points_positive"),
    )

    # Relationships
    grades = relationship("AssignmentGrade", back_populates="assignment")

# Assignment Grade model
class AssignmentGrade(Base):
    __tablename__ = "assignment_grades"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    # NULL means not graded yet, which is not the same as zero points
    points_earned = Column(Numeric(8, 2))
    grade = Column(Float)
    percentage = Column(Float)
    is_submitted = Column(Boolean, nullable=False, default=True)
    is_late = Column(Boolean, nullable=False, default=False)
    notes = Column(Text)
    feedback = Column(Text)
    submitted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_assignment_grade_student"),
        CheckConstraint("points_earned IS NULL OR points_earned >= 0", name="check_points_earned_positive"),
    )

    # Relationships
    assignment = relationship("Assignment", back_populates="grades")
    student = relationship("Student", back_populates="assignment_grades")

# Grade Scale model
class GradeScaleConfig(Base):
    __tablename__ = "grade_scale_config"

    id = Column(Integer, primary_key=True, index=True)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False)
    max_scale = Column(Numeric(6, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("grade_level", "subject_area", name="uq_grade_scale_grade_subject"),
        CheckConstraint("max_scale > 0", name="check_max_scale_positive"),
    )

# Lesson Configuration model
class LessonConfig(Base):
    __tablename__ = "lesson_config"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False, default="general")
    lessons_per_week = Column(Integer, nullable=False)
    total_weeks = Column(Integer, nullable=False)
    total_lessons = Column(Integer, nullable=False)
    teacher_name = Column(String(200))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("grade_level", "subject_area", "academic_period_id", name="uq_lesson_config_grade_subject"),
        CheckConstraint("total_lessons > 0", name="check_total_lessons_positive"),
    )

# Grade-Subject association
class GradeSubject(Base):
    __tablename__ = "grade_subjects"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    grade_name = Column(String(50), nullable=False)
    subject_name = Column(String(100), nullable=False)
    teacher_name = Column(String(200))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("academic_period_id", "grade_name", "subject_name", name="uq_grade_subject"),
    )
