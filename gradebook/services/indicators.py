import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.future import select
from sqlalchemy import and_, asc, desc, delete

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import NotFound
from gradebook.models.indicators import DailyIndicator, DailyEvaluation, DailyIndicatorScore
from gradebook.models.students import Student
from gradebook.schemas.indicators import (
    IndicatorCreate, IndicatorBulkCreate, IndicatorInDB,
    IndicatorItemResult, BulkIndicatorResult, BulkIndicatorSummary,
    DailyEvaluationSave, DailyEvaluationSaveResult, DailyEvaluationRow, CotidianoHistoryRow,
)

logger = logging.getLogger(__name__)


class IndicatorService:
    """Daily ("cotidiano") indicators evaluated per grade and subject."""

    def __init__(self, database: Database):
        self.database = database

    async def list_indicators(self, grade_level: str, subject_area: str,
                              academic_period_id: Optional[int] = None) -> List[IndicatorInDB]:
        period_id = academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        query = (
            select(DailyIndicator)
            .where(
                and_(
                    DailyIndicator.grade_level == grade_level,
                    DailyIndicator.subject_area == subject_area,
                    DailyIndicator.academic_period_id == period_id,
                    DailyIndicator.is_active == True
                )
            )
            # Top level indicators first, then children grouped by parent
            .order_by(
                DailyIndicator.parent_indicator_id.is_(None).desc(),
                asc(DailyIndicator.parent_indicator_id),
                asc(DailyIndicator.id)
            )
        )

        async with self.database.session() as session:
            result = await session.execute(query)
            return [IndicatorInDB.model_validate(indicator) for indicator in result.scalars().all()]

    async def create_indicator(self, indicator_data: IndicatorCreate) -> IndicatorInDB:
        indicator = DailyIndicator(
            academic_period_id=indicator_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID,
            grade_level=indicator_data.grade_level,
            subject_area=indicator_data.subject_area,
            indicator_name=indicator_data.indicator_name.strip(),
            parent_indicator_id=indicator_data.parent_indicator_id,
            is_active=True
        )

        async with self.database.transaction() as session:
            session.add(indicator)
            await session.flush()
            await session.refresh(indicator)

        return IndicatorInDB.model_validate(indicator)

    async def create_bulk_indicators(self, bulk_data: IndicatorBulkCreate) -> BulkIndicatorResult:
        """
        Create several indicators, reporting the outcome of each one.

        Unlike grade batches this is not all-or-nothing: an empty name is
        reported as a failed item and the remaining indicators are still created.
        """
        period_id = bulk_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        results: List[IndicatorItemResult] = []

        async with self.database.transaction() as session:
            for item in bulk_data.indicators:
                name = (item.indicator_name or "").strip()
                if not name:
                    results.append(IndicatorItemResult(
                        indicator_name=item.indicator_name or "EMPTY",
                        success=False,
                        error="Empty name"
                    ))
                    continue

                indicator = DailyIndicator(
                    academic_period_id=period_id,
                    grade_level=bulk_data.grade_level,
                    subject_area=bulk_data.subject_area,
                    indicator_name=name,
                    parent_indicator_id=item.parent_indicator_id,
                    is_active=True
                )
                session.add(indicator)
                await session.flush()

                results.append(IndicatorItemResult(indicator_name=name, success=True, id=indicator.id))

        success = sum(1 for r in results if r.success)
        return BulkIndicatorResult(
            results=results,
            summary=BulkIndicatorSummary(
                total=len(bulk_data.indicators),
                success=success,
                errors=len(results) - success
            )
        )

    async def delete_indicator(self, indicator_id: int) -> int:
        async with self.database.transaction() as session:
            result = await session.execute(delete(DailyIndicator).where(DailyIndicator.id == indicator_id))
            if result.rowcount == 0:
                raise NotFound(f"Indicator {indicator_id} not found")

        return result.rowcount


class DailyEvaluationService:
    """
    Daily ("cotidiano") evaluations: the score of each indicator for a
    student on a given day.
    """

    def __init__(self, database: Database):
        self.database = database

    async def save_daily_evaluation(self, evaluation_data: DailyEvaluationSave) -> DailyEvaluationSaveResult:
        """
        Create or replace the daily evaluation of a student for a day, grade and subject.

        The scores of an existing evaluation are replaced by the ones given.

        Raises:
            NotFound: If a scored indicator does not exist for the grade and subject
        """
        period_id = evaluation_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        # Last score wins when an indicator is repeated
        scores = {score.indicator_id: score for score in evaluation_data.scores}

        async with self.database.transaction() as session:
            if scores:
                result = await session.execute(
                    select(DailyIndicator.id).where(
                        and_(
                            DailyIndicator.id.in_(list(scores)),
                            DailyIndicator.grade_level == evaluation_data.grade_level,
                            DailyIndicator.subject_area == evaluation_data.subject_area
                        )
                    )
                )
                missing = sorted(set(scores) - set(result.scalars().all()))
                if missing:
                    raise NotFound(
                        f"Indicators {missing} not found for "
                        f"{evaluation_data.grade_level} - {evaluation_data.subject_area}"
                    )

            existing_result = await session.execute(
                select(DailyEvaluation).where(
                    and_(
                        DailyEvaluation.student_id == evaluation_data.student_id,
                        DailyEvaluation.evaluation_date == evaluation_data.evaluation_date,
                        DailyEvaluation.grade_level == evaluation_data.grade_level,
                        DailyEvaluation.subject_area == evaluation_data.subject_area,
                        DailyEvaluation.academic_period_id == period_id
                    )
                )
            )
            evaluation = existing_result.scalars().first()

            if evaluation:
                evaluation.notes = evaluation_data.notes
                await session.execute(
                    delete(DailyIndicatorScore).where(DailyIndicatorScore.daily_evaluation_id == evaluation.id)
                )
                action = "updated"
            else:
                evaluation = DailyEvaluation(
                    academic_period_id=period_id,
                    student_id=evaluation_data.student_id,
                    grade_level=evaluation_data.grade_level,
                    subject_area=evaluation_data.subject_area,
                    evaluation_date=evaluation_data.evaluation_date,
                    notes=evaluation_data.notes
                )
                session.add(evaluation)
                await session.flush()
                action = "created"

            for indicator_id, score in scores.items():
                session.add(DailyIndicatorScore(
                    daily_evaluation_id=evaluation.id,
                    daily_indicator_id=indicator_id,
                    score=score.score,
                    notes=score.notes
                ))
            await session.flush()
            evaluation_id = evaluation.id

        logger.info(
            f"Daily evaluation {evaluation_id} {action} for student {evaluation_data.student_id} "
            f"on {evaluation_data.evaluation_date}: {len(scores)} scores"
        )
        return DailyEvaluationSaveResult(id=evaluation_id, action=action, scores_saved=len(scores))

    async def get_evaluation_by_date(
        self,
        grade_level: str,
        subject_area: str,
        evaluation_date: date,
        academic_period_id: Optional[int] = None
    ) -> List[DailyEvaluationRow]:
        """One row per scored indicator; evaluations without scores give a single row."""
        query = (
            select(DailyEvaluation, DailyIndicatorScore)
            .outerjoin(DailyIndicatorScore, DailyIndicatorScore.daily_evaluation_id == DailyEvaluation.id)
            .where(
                and_(
                    DailyEvaluation.grade_level == grade_level,
                    DailyEvaluation.subject_area == subject_area,
                    DailyEvaluation.evaluation_date == evaluation_date
                )
            )
        )
        if academic_period_id:
            query = query.where(DailyEvaluation.academic_period_id == academic_period_id)
        query = query.order_by(DailyEvaluation.student_id, DailyIndicatorScore.daily_indicator_id)

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        return [
            DailyEvaluationRow(
                id=evaluation.id,
                student_id=evaluation.student_id,
                grade_level=evaluation.grade_level,
                subject_area=evaluation.subject_area,
                evaluation_date=evaluation.evaluation_date,
                notes=evaluation.notes,
                indicator_id=score.daily_indicator_id if score else None,
                score=score.score if score else None,
                score_notes=score.notes if score else None,
            )
            for evaluation, score in rows
        ]

    async def get_cotidiano_history(
        self,
        grade_level: str,
        subject_area: str,
        academic_period_id: Optional[int] = None
    ) -> List[CotidianoHistoryRow]:
        """Every indicator score of a grade and subject, most recent day first."""
        period_id = academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        query = (
            select(
                DailyEvaluation.evaluation_date,
                DailyEvaluation.grade_level,
                DailyEvaluation.subject_area,
                DailyEvaluation.student_id,
                Student.first_surname,
                Student.second_surname,
                Student.first_name,
                DailyIndicator.indicator_name,
                DailyIndicatorScore.score,
                DailyIndicatorScore.notes
            )
            .outerjoin(Student, DailyEvaluation.student_id == Student.id)
            .outerjoin(DailyIndicatorScore, DailyIndicatorScore.daily_evaluation_id == DailyEvaluation.id)
            .outerjoin(DailyIndicator, DailyIndicatorScore.daily_indicator_id == DailyIndicator.id)
            .where(
                and_(
                    DailyEvaluation.grade_level == grade_level,
                    DailyEvaluation.subject_area == subject_area,
                    DailyEvaluation.academic_period_id == period_id
                )
            )
            .order_by(desc(DailyEvaluation.evaluation_date), Student.first_surname, DailyIndicator.indicator_name)
        )

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        history = []
        for row in rows:
            student_name = None
            if row.first_surname:
                student_name = " ".join(
                    part for part in (row.first_surname, row.second_surname, row.first_name) if part
                )
            history.append(CotidianoHistoryRow(
                evaluation_date=row.evaluation_date,
                grade_level=row.grade_level,
                subject_area=row.subject_area,
                student_id=row.student_id,
                first_surname=row.first_surname,
                second_surname=row.second_surname,
                first_name=row.first_name,
                student_name=student_name,
                indicator_name=row.indicator_name,
                score=row.score,
                notes=row.notes,
            ))
        logger.debug(f"Cotidiano history: {len(history)} rows for {grade_level} - {subject_area}")
        return history
