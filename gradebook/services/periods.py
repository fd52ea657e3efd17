import logging

from sqlalchemy import delete
from sqlalchemy.future import select

from gradebook.database import Database
from gradebook.models.academics import AssignmentGrade, LessonConfig
from gradebook.models.attendance import AttendanceRecord
from gradebook.models.indicators import DailyEvaluation, DailyIndicatorScore
from gradebook.schemas.academics import PeriodCleanupResult

logger = logging.getLogger(__name__)


async def delete_scoped_data(database: Database, academic_period_id: int) -> PeriodCleanupResult:
    """
    Remove the attendance, grades, daily evaluations and lesson configuration of an academic period.

    Evaluation and indicator definitions and students are kept. Everything is
    removed in a single transaction.
    """
    async with database.transaction() as session:
        attendance = await session.execute(
            delete(AttendanceRecord).where(AttendanceRecord.academic_period_id == academic_period_id)
        )
        grades = await session.execute(
            delete(AssignmentGrade).where(AssignmentGrade.academic_period_id == academic_period_id)
        )
        period_evaluations = select(DailyEvaluation.id).where(DailyEvaluation.academic_period_id == academic_period_id)
        await session.execute(
            delete(DailyIndicatorScore).where(DailyIndicatorScore.daily_evaluation_id.in_(period_evaluations))
            .execution_options(synchronize_session=False)
        )
        daily = await session.execute(
            delete(DailyEvaluation).where(DailyEvaluation.academic_period_id == academic_period_id)
        )
        lessons = await session.execute(
            delete(LessonConfig).where(LessonConfig.academic_period_id == academic_period_id)
        )

    logger.info(
        f"Period {academic_period_id} cleaned: {attendance.rowcount} attendance records, "
        f"{grades.rowcount} grades, {daily.rowcount} daily evaluations, "
        f"{lessons.rowcount} lesson configurations"
    )
    return PeriodCleanupResult(
        academic_period_id=academic_period_id,
        attendance_deleted=attendance.rowcount,
        grades_deleted=grades.rowcount,
        daily_evaluations_deleted=daily.rowcount,
        lesson_configs_deleted=lessons.rowcount,
    )
