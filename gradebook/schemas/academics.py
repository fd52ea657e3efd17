from datetime import datetime, date
from typing import Optional, List
from pydantic import BaseModel, Field


# Grade scale schemas
class GradeScaleUpdate(BaseModel):
    max_scale: float


class GradeScaleResponse(BaseModel):
    grade_level: str
    subject_area: str
    max_scale: float


# Lesson configuration schemas
class LessonConfigBase(BaseModel):
    lessons_per_week: int = Field(..., gt=0)
    total_weeks: int = Field(..., gt=0)
    total_lessons: Optional[int] = Field(None, gt=0)
    teacher_name: Optional[str] = None


class LessonConfigSave(LessonConfigBase):
    grade_level: str
    subject_area: str = "general"
    academic_period_id: Optional[int] = None


class LessonConfigResponse(BaseModel):
    grade_level: str
    subject_area: str
    lessons_per_week: int
    total_weeks: int
    total_lessons: int
    teacher_name: Optional[str] = None
    is_default: bool = False


# Assignment (evaluation) schemas
class AssignmentBase(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    max_points: float = Field(..., gt=0)
    percentage: float = Field(..., ge=0, le=100)
    type: str = "tarea"


class AssignmentCreate(AssignmentBase):
    grade_level: str
    subject_area: str
    teacher_name: Optional[str] = None
    academic_period_id: Optional[int] = None


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    max_points: Optional[float] = Field(None, gt=0)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    type: Optional[str] = None


class AssignmentInDB(AssignmentBase):
    id: int
    academic_period_id: int
    grade_level: str
    subject_area: str
    teacher_name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentWithStats(AssignmentInDB):
    total_grades: int = 0
    avg_grade: Optional[float] = None
    total_students: int = 0


# Assignment grade schemas
class GradeInput(BaseModel):
    assignment_id: int
    student_id: int
    points_earned: Optional[float] = Field(None, ge=0)
    grade: Optional[float] = None
    # Accepted for compatibility with the grading screen, always recomputed
    percentage: Optional[float] = None
    is_submitted: bool = True
    is_late: bool = False
    notes: Optional[str] = None
    feedback: Optional[str] = None


class BatchGradeSave(BaseModel):
    grades: List[GradeInput]


class BatchResult(BaseModel):
    saved_count: int
    error_count: int


class EvaluationGradeRow(BaseModel):
    student_id: int
    student_code: str
    first_name: str
    first_surname: str
    second_surname: Optional[str] = None
    grade_id: Optional[int] = None
    points_earned: Optional[float] = None
    grade: Optional[float] = None
    percentage: Optional[float] = None
    is_submitted: Optional[bool] = None
    is_late: Optional[bool] = None
    notes: Optional[str] = None
    feedback: Optional[str] = None
    assignment_id: int
    task_title: str
    max_points: float
    task_percentage: float


# Evaluation statistics
class StudentEvaluationStats(BaseModel):
    student_id: int
    grade_level: str
    subject_area: str
    total_evaluations: int
    completed_evaluations: int
    pending_evaluations: int
    completion_rate: float
    avg_percentage: float
    total_weight: float
    late_submissions: int
    good_grades: int
    min_grade: Optional[float] = None
    max_grade: Optional[float] = None
    calculated_at: datetime


class TypeSummary(BaseModel):
    grade_level: str
    subject_area: str
    type: str
    total_evaluations: int
    total_grades: int
    avg_percentage: Optional[float] = None
    students_graded: int
    total_students: int


class CourseSummary(BaseModel):
    grade_level: str
    subject_area: str
    total_evaluations: int
    total_submissions: int
    avg_class_percentage: Optional[float] = None
    total_weight_configured: float
    students_with_grades: int


class EvaluationTypeStats(BaseModel):
    type: str
    total_evaluations: int
    total_submissions: int
    avg_percentage: Optional[float] = None
    courses_using: int


class EvaluationGradeLevelStats(BaseModel):
    grade_level: str
    total_evaluations: int
    subjects_count: int
    total_grades: int
    avg_percentage: Optional[float] = None
    students_graded: int


class EvaluationProgress(BaseModel):
    grade_level: str
    subject_area: str
    total_evaluations: int
    total_grades: int
    total_students: int
    completion_percentage: float


# Grade-subject schemas
class GradeSubjectAssign(BaseModel):
    grades: List[str] = Field(..., min_length=1)
    subjects: List[str] = Field(..., min_length=1)
    teacher_name: Optional[str] = None
    academic_period_id: Optional[int] = None


class SubjectAssignmentResult(BaseModel):
    success_count: int
    error_count: int
    affected_grades: int
    message: str


class GradeSubjectInDB(BaseModel):
    id: int
    academic_period_id: int
    grade_name: str
    subject_name: str
    teacher_name: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


# Period scoping
class PeriodCleanupResult(BaseModel):
    academic_period_id: int
    attendance_deleted: int
    grades_deleted: int
    daily_evaluations_deleted: int
    lesson_configs_deleted: int
