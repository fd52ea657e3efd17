from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, status, Query, Path

from gradebook.database import Database, get_database
from gradebook.schemas.attendance import (
    AttendanceRecordCreate, AttendanceRecordInDB, AttendanceSaveResult, AttendanceDeleteResult,
    AttendanceCounts, AttendanceGrade, ClassAttendanceStats
)
from gradebook.services.attendance import AttendanceAggregator

router = APIRouter()

@router.post("/attendance", response_model=AttendanceSaveResult, status_code=status.HTTP_201_CREATED)
async def save_attendance(
    attendance_data: AttendanceRecordCreate,
    database: Database = Depends(get_database)
):
    """
    Record a student's attendance for a day, replacing any previous record
    for the same grade and subject.
    """
    return await AttendanceAggregator(database).save_attendance(attendance_data)

@router.get("/attendance", response_model=List[AttendanceRecordInDB])
async def get_attendance_by_date(
    date_param: date = Query(..., alias="date"),
    grade_level: str = Query(...),
    subject_area: Optional[str] = Query(None),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    """
    Get the attendance of a grade on a given day.
    """
    return await AttendanceAggregator(database).get_attendance_by_date(
        date_param, grade_level, subject_area, academic_period_id
    )

@router.delete("/attendance", response_model=AttendanceDeleteResult)
async def delete_attendance_by_date(
    date_param: date = Query(..., alias="date"),
    grade_level: str = Query(...),
    subject_area: Optional[str] = Query(None),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    deleted = await AttendanceAggregator(database).delete_attendance_by_date(
        date_param, grade_level, subject_area, academic_period_id
    )
    return {"deleted": deleted}

@router.get("/attendance/statistics/student/{student_id}", response_model=AttendanceCounts)
async def get_student_attendance_counts(
    student_id: int = Path(..., gt=0),
    grade_level: str = Query(...),
    subject_area: str = Query("general"),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    """
    Count a student's attendance records per status.
    """
    return await AttendanceAggregator(database).tally(student_id, grade_level, subject_area, academic_period_id)

@router.get("/attendance/mep-grade/{student_id}", response_model=AttendanceGrade)
async def get_mep_attendance_grade(
    student_id: int = Path(..., gt=0),
    grade_level: str = Query(...),
    subject_area: str = Query("general"),
    total_lessons: Optional[int] = Query(None),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    """
    Compute the MEP attendance grade of a student.

    total_lessons defaults to the lesson configuration of the grade and subject.
    """
    return await AttendanceAggregator(database).calculate_attendance_grade(
        student_id, grade_level, subject_area, total_lessons, academic_period_id
    )

@router.get("/attendance/class-stats", response_model=ClassAttendanceStats)
async def get_class_attendance_stats(
    grade_level: str = Query(...),
    subject_area: str = Query("general"),
    total_lessons: Optional[int] = Query(None),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    """
    MEP attendance grade of every active student of a grade, with the class averages.
    """
    return await AttendanceAggregator(database).class_attendance_stats(
        grade_level, subject_area, total_lessons, academic_period_id
    )
