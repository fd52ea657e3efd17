from sqlalchemy import Column, Integer, String, Date, DateTime, Float, ForeignKey, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.database import Base

# Daily Indicator model ("cotidiano" rubric line)
class DailyIndicator(Base):
    __tablename__ = "daily_indicators"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False)
    indicator_name = Column(String(300), nullable=False)
    parent_indicator_id = Column(Integer, ForeignKey("daily_indicators.id", ondelete="CASCADE"))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    parent = relationship("DailyIndicator", remote_side=[id], back_populates="children")
    children = relationship("DailyIndicator", back_populates="parent", passive_deletes=True)

# Daily Evaluation model (one student, one day, one grade/subject)
class DailyEvaluation(Base):
    __tablename__ = "daily_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    academic_period_id = Column(Integer, nullable=False, default=1, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    grade_level = Column(String(50), nullable=False)
    subject_area = Column(String(100), nullable=False)
    evaluation_date = Column(Date, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "student_id", "evaluation_date", "grade_level", "subject_area", "academic_period_id",
            name="uq_daily_evaluation_student_day",
        ),
    )

    # Relationships
    scores = relationship("DailyIndicatorScore", back_populates="evaluation", passive_deletes=True)

# Score of one indicator within a daily evaluation
class DailyIndicatorScore(Base):
    __tablename__ = "daily_indicator_scores"

    id = Column(Integer, primary_key=True, index=True)
    daily_evaluation_id = Column(Integer, ForeignKey("daily_evaluations.id", ondelete="CASCADE"), nullable=False)
    daily_indicator_id = Column(Integer, ForeignKey("daily_indicators.id", ondelete="CASCADE"), nullable=False)
    # NULL means not scored yet
    score = Column(Float)
    notes = Column(Text)

    __table_args__ = (
        UniqueConstraint("daily_evaluation_id", "daily_indicator_id", name="uq_daily_indicator_score"),
    )

    # Relationships
    evaluation = relationship("DailyEvaluation", back_populates="scores")
    indicator = relationship("DailyIndicator")
