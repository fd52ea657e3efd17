from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query, Path

from gradebook.database import Database, get_database
from gradebook.schemas.academics import GradeSubjectAssign, GradeSubjectInDB, SubjectAssignmentResult
from gradebook.services.batch import GradeSubjectService

router = APIRouter()

@router.post("/grade-subjects", response_model=SubjectAssignmentResult, status_code=status.HTTP_201_CREATED)
async def assign_subjects_to_grades(
    assignment_data: GradeSubjectAssign,
    database: Database = Depends(get_database)
):
    """
    Assign every listed subject to every listed grade. Nothing is saved if any pair fails.
    """
    return await GradeSubjectService(database).assign_subjects_to_grades(assignment_data)

@router.get("/grade-subjects/{grade_name}", response_model=List[GradeSubjectInDB])
async def get_subjects_by_grade(
    grade_name: str = Path(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await GradeSubjectService(database).get_subjects_by_grade(grade_name, academic_period_id)

@router.delete("/grade-subjects/{grade_name}/{subject_name}")
async def remove_subject_from_grade(
    grade_name: str = Path(...),
    subject_name: str = Path(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    removed = await GradeSubjectService(database).remove_subject_from_grade(
        grade_name, subject_name, academic_period_id
    )
    return {"removed": removed}
