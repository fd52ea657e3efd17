from typing import Optional
from fastapi import APIRouter, Depends, Query, Path

from gradebook.database import Database, get_database
from gradebook.schemas.academics import (
    GradeScaleUpdate, GradeScaleResponse, LessonConfigSave, LessonConfigResponse
)
from gradebook.services.lessons import LessonConfigService
from gradebook.services.scales import ScaleRegistry

router = APIRouter()

# Grade scale endpoints
@router.get("/grade-scales/{grade_level}/{subject_area}", response_model=GradeScaleResponse)
async def get_grade_scale(
    grade_level: str = Path(...),
    subject_area: str = Path(...),
    database: Database = Depends(get_database)
):
    max_scale = await ScaleRegistry(database).get_scale(grade_level, subject_area)
    return {"grade_level": grade_level, "subject_area": subject_area, "max_scale": max_scale}

@router.put("/grade-scales/{grade_level}/{subject_area}", response_model=GradeScaleResponse)
async def set_grade_scale(
    scale_data: GradeScaleUpdate,
    grade_level: str = Path(...),
    subject_area: str = Path(...),
    database: Database = Depends(get_database)
):
    """
    Register the maximum grade (e.g. 5 or 10) used to rescale attendance grades.
    """
    max_scale = await ScaleRegistry(database).set_scale(grade_level, subject_area, scale_data.max_scale)
    return {"grade_level": grade_level, "subject_area": subject_area, "max_scale": max_scale}

# Lesson configuration endpoints
@router.get("/lesson-config", response_model=LessonConfigResponse)
async def get_lesson_config(
    grade_level: str = Query(...),
    subject_area: str = Query("general"),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await LessonConfigService(database).get_lesson_config(grade_level, subject_area, academic_period_id)

@router.put("/lesson-config", response_model=LessonConfigResponse)
async def save_lesson_config(
    config_data: LessonConfigSave,
    database: Database = Depends(get_database)
):
    """
    Save the lesson configuration of a grade and subject.

    total_lessons defaults to lessons_per_week x total_weeks.
    """
    return await LessonConfigService(database).save_lesson_config(config_data)
