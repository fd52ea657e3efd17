from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query, Path

from gradebook.database import Database, get_database
from gradebook.schemas.academics import (
    AssignmentCreate, AssignmentUpdate, AssignmentInDB, AssignmentWithStats,
    BatchGradeSave, BatchResult, EvaluationGradeRow,
    StudentEvaluationStats, TypeSummary, CourseSummary,
    EvaluationTypeStats, EvaluationGradeLevelStats, EvaluationProgress,
)
from gradebook.services.batch import BatchGradeWriter
from gradebook.services.evaluations import EvaluationService, EvaluationStatistics

router = APIRouter()

# Evaluation endpoints
@router.get("/evaluations", response_model=List[AssignmentWithStats])
async def list_evaluations(
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    """
    Get the active evaluations of a grade and subject with their grading totals.
    """
    return await EvaluationService(database).list_evaluations(grade_level, subject_area, academic_period_id)

@router.post("/evaluations", response_model=AssignmentInDB, status_code=status.HTTP_201_CREATED)
async def create_evaluation(
    evaluation_data: AssignmentCreate,
    database: Database = Depends(get_database)
):
    return await EvaluationService(database).create_evaluation(evaluation_data)

@router.put("/evaluations/{evaluation_id}", response_model=AssignmentInDB)
async def update_evaluation(
    evaluation_data: AssignmentUpdate,
    evaluation_id: int = Path(..., gt=0),
    database: Database = Depends(get_database)
):
    return await EvaluationService(database).update_evaluation(evaluation_id, evaluation_data)

@router.delete("/evaluations/{evaluation_id}", response_model=AssignmentInDB)
async def delete_evaluation(
    evaluation_id: int = Path(..., gt=0),
    database: Database = Depends(get_database)
):
    """
    Deactivate an evaluation. Its grades are kept.
    """
    return await EvaluationService(database).delete_evaluation(evaluation_id)

@router.get("/evaluations/{evaluation_id}/grades", response_model=List[EvaluationGradeRow])
async def get_evaluation_grades(
    evaluation_id: int = Path(..., gt=0),
    database: Database = Depends(get_database)
):
    """
    Get the students of an evaluation with their grade, if any.
    """
    return await EvaluationService(database).get_evaluation_grades(evaluation_id)

@router.post("/evaluations/grades/batch", response_model=BatchResult)
async def save_evaluation_grades(
    batch_data: BatchGradeSave,
    database: Database = Depends(get_database)
):
    """
    Save a set of grades atomically.

    Percentages are recomputed from points_earned and the evaluation's
    max_points. If any grade fails nothing is saved and 409 is returned.
    """
    return await BatchGradeWriter(database).save_batch(batch_data.grades)

# Statistics endpoints
@router.get("/evaluations/statistics/student/{student_id}", response_model=StudentEvaluationStats)
async def get_student_evaluation_stats(
    student_id: int = Path(..., gt=0),
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await EvaluationStatistics(database).per_student_stats(
        student_id, grade_level, subject_area, academic_period_id
    )

@router.get("/evaluations/statistics/summary", response_model=List[TypeSummary])
async def get_class_summary(
    grade_level: Optional[str] = Query(None),
    subject_area: Optional[str] = Query(None),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await EvaluationStatistics(database).class_summary(grade_level, subject_area, academic_period_id)

@router.get("/evaluations/statistics/course", response_model=CourseSummary)
async def get_course_summary(
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await EvaluationStatistics(database).course_summary(grade_level, subject_area, academic_period_id)

@router.get("/evaluations/statistics/types", response_model=List[EvaluationTypeStats])
async def get_evaluation_type_stats(database: Database = Depends(get_database)):
    return await EvaluationStatistics(database).type_stats()

@router.get("/evaluations/statistics/grades", response_model=List[EvaluationGradeLevelStats])
async def get_evaluation_grade_stats(database: Database = Depends(get_database)):
    return await EvaluationStatistics(database).grade_stats()

@router.get("/evaluations/statistics/progress", response_model=List[EvaluationProgress])
async def get_evaluation_progress(
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await EvaluationStatistics(database).progress(academic_period_id)
