from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class IndicatorBase(BaseModel):
    grade_level: str
    subject_area: str
    academic_period_id: Optional[int] = None


class IndicatorCreate(IndicatorBase):
    indicator_name: str
    parent_indicator_id: Optional[int] = None


class IndicatorItem(BaseModel):
    indicator_name: Optional[str] = None
    parent_indicator_id: Optional[int] = None


class IndicatorBulkCreate(IndicatorBase):
    indicators: List[IndicatorItem]


class IndicatorInDB(BaseModel):
    id: int
    academic_period_id: int
    grade_level: str
    subject_area: str
    indicator_name: str
    parent_indicator_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IndicatorItemResult(BaseModel):
    indicator_name: str
    success: bool
    id: Optional[int] = None
    error: Optional[str] = None


class BulkIndicatorSummary(BaseModel):
    total: int
    success: int
    errors: int


class BulkIndicatorResult(BaseModel):
    results: List[IndicatorItemResult]
    summary: BulkIndicatorSummary


# Daily evaluation (cotidiano) schemas
class IndicatorScoreInput(BaseModel):
    indicator_id: int
    score: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class DailyEvaluationSave(BaseModel):
    student_id: int
    grade_level: str
    subject_area: str
    evaluation_date: date
    academic_period_id: Optional[int] = None
    notes: Optional[str] = None
    scores: List[IndicatorScoreInput]


class DailyEvaluationSaveResult(BaseModel):
    id: int
    action: str
    scores_saved: int


class DailyEvaluationRow(BaseModel):
    id: int
    student_id: int
    grade_level: str
    subject_area: str
    evaluation_date: date
    notes: Optional[str] = None
    indicator_id: Optional[int] = None
    score: Optional[float] = None
    score_notes: Optional[str] = None


class CotidianoHistoryRow(BaseModel):
    evaluation_date: date
    grade_level: str
    subject_area: str
    student_id: int
    first_surname: Optional[str] = None
    second_surname: Optional[str] = None
    first_name: Optional[str] = None
    student_name: Optional[str] = None
    indicator_name: Optional[str] = None
    score: Optional[float] = None
    notes: Optional[str] = None
