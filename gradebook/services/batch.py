import asyncio
import logging
from itertools import product
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select
from sqlalchemy import and_

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import BatchPartialFailure
from gradebook.models.academics import Assignment, AssignmentGrade, GradeSubject
from gradebook.schemas.academics import (
    BatchResult, GradeInput, GradeSubjectAssign, GradeSubjectInDB, SubjectAssignmentResult
)

logger = logging.getLogger(__name__)


class GradeRowError(Exception):
    """A single row of a batch cannot be written."""


def compute_percentage(points_earned: Optional[float], max_points) -> Optional[float]:
    """
    Percentage of the evaluation earned by the student.

    Returns None for an ungraded entry (no points recorded).

    Raises:
        GradeRowError: If the evaluation has no positive maximum
    """
    if max_points is None or float(max_points) <= 0:
        raise GradeRowError("evaluation has no positive max_points")
    if points_earned is None:
        return None
    return float(points_earned) * 100 / float(max_points)


class BatchGradeWriter:
    """
    All-or-nothing persistence of grades coming from the grading screen.

    Every row of a batch is written inside one transaction. The commit or
    rollback decision is taken once every row has reported back: a single
    failing row rolls back the whole batch and raises BatchPartialFailure.
    Once started, a batch is not cancellable; it always ends in a full commit
    or a full rollback.
    """

    def __init__(self, database: Database):
        self.database = database

    async def save_batch(self, grades: Sequence[GradeInput]) -> BatchResult:
        self.database.ensure_initialized()
        if not grades:
            return BatchResult(saved_count=0, error_count=0)

        return await asyncio.shield(self._save_batch(list(grades)))

    async def _save_batch(self, grades: List[GradeInput]) -> BatchResult:
        saved_count = 0
        errors: List[str] = []
        logger.info(f"Saving batch of {len(grades)} grades")

        try:
            async with self.database.transaction() as session:
                assignment_ids = {grade.assignment_id for grade in grades}
                result = await session.execute(select(Assignment).where(Assignment.id.in_(assignment_ids)))
                assignments: Dict[int, Assignment] = {a.id: a for a in result.scalars().all()}

                for index, grade_input in enumerate(grades, start=1):
                    try:
                        await self._upsert_grade(session, assignments.get(grade_input.assignment_id), grade_input)
                        saved_count += 1
                    except GradeRowError as e:
                        errors.append(f"Grade {index} (student {grade_input.student_id}): {e}")
                    except SQLAlchemyError as e:
                        # The transaction is unusable after a failed statement
                        errors.append(f"Grade {index} (student {grade_input.student_id}): {e}")
                        break

                if errors:
                    raise BatchPartialFailure(
                        error_count=len(errors),
                        errors=errors[:settings.BATCH_ERROR_SAMPLE_SIZE],
                        attempted=len(grades)
                    )
        except BatchPartialFailure as e:
            logger.warning(f"Rollback: {len(grades)} grades attempted, {e.error_count} errors")
            raise

        logger.info(f"Batch committed: {saved_count} grades saved")
        return BatchResult(saved_count=saved_count, error_count=0)

    async def _upsert_grade(self, session, assignment: Optional[Assignment], grade_input: GradeInput) -> None:
        if assignment is None:
            raise GradeRowError(f"evaluation {grade_input.assignment_id} not found")
        if not assignment.is_active:
            raise GradeRowError(f"evaluation {grade_input.assignment_id} is not active")

        # The percentage sent by the client is never trusted
        percentage = compute_percentage(grade_input.points_earned, assignment.max_points)
        grade_value = grade_input.grade if grade_input.grade is not None else percentage

        existing_result = await session.execute(
            select(AssignmentGrade).where(
                and_(
                    AssignmentGrade.assignment_id == grade_input.assignment_id,
                    AssignmentGrade.student_id == grade_input.student_id
                )
            )
        )
        grade = existing_result.scalars().first()

        if grade is None:
            grade = AssignmentGrade(
                assignment_id=grade_input.assignment_id,
                student_id=grade_input.student_id
            )
            session.add(grade)

        grade.academic_period_id = assignment.academic_period_id
        grade.points_earned = grade_input.points_earned
        grade.grade = grade_value
        grade.percentage = percentage
        grade.is_submitted = grade_input.is_submitted
        grade.is_late = grade_input.is_late
        grade.notes = grade_input.notes
        grade.feedback = grade_input.feedback
        if grade_input.is_submitted and grade.submitted_at is None:
            grade.submitted_at = datetime.now(timezone.utc)

        await session.flush()


class GradeSubjectService:
    """Subjects taught in each grade."""

    def __init__(self, database: Database):
        self.database = database

    async def assign_subjects_to_grades(self, assignment_data: GradeSubjectAssign) -> SubjectAssignmentResult:
        """
        Assign every subject to every grade in one transaction.

        Raises:
            BatchPartialFailure: If any pair fails; nothing is applied
        """
        period_id = assignment_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        success_count = 0
        errors: List[str] = []

        async with self.database.transaction() as session:
            for grade_name, subject in product(assignment_data.grades, assignment_data.subjects):
                try:
                    await self._upsert_pair(session, period_id, grade_name, subject, assignment_data.teacher_name)
                    success_count += 1
                except GradeRowError as e:
                    errors.append(f"Error with {grade_name} - {subject}: {e}")
                except SQLAlchemyError as e:
                    errors.append(f"Error with {grade_name} - {subject}: {e}")
                    break

            if errors:
                logger.warning(f"Rollback of subject assignment: {len(errors)} errors")
                raise BatchPartialFailure(
                    error_count=len(errors),
                    errors=errors[:settings.BATCH_ERROR_SAMPLE_SIZE],
                    attempted=len(assignment_data.grades) * len(assignment_data.subjects)
                )

        affected_grades = len(assignment_data.grades)
        return SubjectAssignmentResult(
            success_count=success_count,
            error_count=0,
            affected_grades=affected_grades,
            message=f"{success_count} assignments completed in {affected_grades} grades",
        )

    async def _upsert_pair(self, session, period_id: int, grade_name: str, subject: str,
                           teacher_name: Optional[str]) -> None:
        if not grade_name.strip() or not subject.strip():
            raise GradeRowError("grade and subject names cannot be empty")

        result = await session.execute(
            select(GradeSubject).where(
                and_(
                    GradeSubject.academic_period_id == period_id,
                    GradeSubject.grade_name == grade_name,
                    GradeSubject.subject_name == subject
                )
            )
        )
        pair = result.scalars().first()
        if pair is None:
            pair = GradeSubject(academic_period_id=period_id, grade_name=grade_name, subject_name=subject)
            session.add(pair)

        pair.teacher_name = teacher_name
        pair.is_active = True
        await session.flush()

    async def get_subjects_by_grade(self, grade_name: str,
                                    academic_period_id: Optional[int] = None) -> List[GradeSubjectInDB]:
        query = select(GradeSubject).where(
            and_(
                GradeSubject.grade_name == grade_name,
                GradeSubject.is_active == True
            )
        )
        if academic_period_id:
            query = query.where(GradeSubject.academic_period_id == academic_period_id)
        query = query.order_by(GradeSubject.subject_name)

        async with self.database.session() as session:
            result = await session.execute(query)
            return [GradeSubjectInDB.model_validate(pair) for pair in result.scalars().all()]

    async def remove_subject_from_grade(self, grade_name: str, subject_name: str,
                                        academic_period_id: Optional[int] = None) -> int:
        """Deactivate a subject in a grade. Returns the number of rows affected."""
        query = select(GradeSubject).where(
            and_(
                GradeSubject.grade_name == grade_name,
                GradeSubject.subject_name == subject_name,
                GradeSubject.is_active == True
            )
        )
        if academic_period_id:
            query = query.where(GradeSubject.academic_period_id == academic_period_id)

        async with self.database.transaction() as session:
            result = await session.execute(query)
            pairs = result.scalars().all()
            for pair in pairs:
                pair.is_active = False

        return len(pairs)
