from fastapi import APIRouter, Depends, Path

from gradebook.database import Database, get_database
from gradebook.schemas.academics import PeriodCleanupResult
from gradebook.services.periods import delete_scoped_data

router = APIRouter()

@router.delete("/periods/{academic_period_id}/data", response_model=PeriodCleanupResult)
async def clean_period_data(
    academic_period_id: int = Path(..., gt=0),
    database: Database = Depends(get_database)
):
    """
    Delete the attendance, grades and lesson configuration of an academic period.
    """
    return await delete_scoped_data(database, academic_period_id)
