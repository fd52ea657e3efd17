from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query, Path

from gradebook.database import Database, get_database
from gradebook.schemas.indicators import (
    IndicatorCreate, IndicatorBulkCreate, IndicatorInDB, BulkIndicatorResult,
    DailyEvaluationSave, DailyEvaluationSaveResult, DailyEvaluationRow, CotidianoHistoryRow,
)
from gradebook.services.indicators import IndicatorService, DailyEvaluationService

router = APIRouter()

@router.get("/indicators", response_model=List[IndicatorInDB])
async def list_indicators(
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await IndicatorService(database).list_indicators(grade_level, subject_area, academic_period_id)

@router.post("/indicators", response_model=IndicatorInDB, status_code=status.HTTP_201_CREATED)
async def create_indicator(
    indicator_data: IndicatorCreate,
    database: Database = Depends(get_database)
):
    return await IndicatorService(database).create_indicator(indicator_data)

@router.post("/indicators/bulk", response_model=BulkIndicatorResult, status_code=status.HTTP_201_CREATED)
async def create_bulk_indicators(
    bulk_data: IndicatorBulkCreate,
    database: Database = Depends(get_database)
):
    """
    Create several indicators; each one reports its own outcome.
    """
    return await IndicatorService(database).create_bulk_indicators(bulk_data)

@router.delete("/indicators/{indicator_id}")
async def delete_indicator(
    indicator_id: int = Path(..., gt=0),
    database: Database = Depends(get_database)
):
    deleted = await IndicatorService(database).delete_indicator(indicator_id)
    return {"deleted": deleted}

# Daily evaluation endpoints
@router.post("/daily-evaluations", response_model=DailyEvaluationSaveResult, status_code=status.HTTP_201_CREATED)
async def save_daily_evaluation(
    evaluation_data: DailyEvaluationSave,
    database: Database = Depends(get_database)
):
    """
    Save the indicator scores of a student for a day, replacing earlier scores of that day.
    """
    return await DailyEvaluationService(database).save_daily_evaluation(evaluation_data)

@router.get("/daily-evaluations", response_model=List[DailyEvaluationRow])
async def get_daily_evaluations_by_date(
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    date_param: date = Query(..., alias="date"),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await DailyEvaluationService(database).get_evaluation_by_date(
        grade_level, subject_area, date_param, academic_period_id
    )

@router.get("/daily-evaluations/history", response_model=List[CotidianoHistoryRow])
async def get_cotidiano_history(
    grade_level: str = Query(...),
    subject_area: str = Query(...),
    academic_period_id: Optional[int] = Query(None),
    database: Database = Depends(get_database)
):
    return await DailyEvaluationService(database).get_cotidiano_history(grade_level, subject_area, academic_period_id)
