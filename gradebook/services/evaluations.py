import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.future import select
from sqlalchemy import and_, or_, desc, func, distinct

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import NotFound
from gradebook.models.academics import Assignment, AssignmentGrade
from gradebook.models.students import Student
from gradebook.schemas.academics import (
    AssignmentCreate, AssignmentUpdate, AssignmentInDB, AssignmentWithStats,
    EvaluationGradeRow, StudentEvaluationStats, TypeSummary, CourseSummary,
    EvaluationTypeStats, EvaluationGradeLevelStats, EvaluationProgress,
)

logger = logging.getLogger(__name__)


def _round(value, digits: int = 1) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), digits)


def eligible_students_filter(grade_level: str, subject_area: str, academic_period_id: Optional[int] = None):
    """
    Active students of a grade who take the subject.

    Students without a subject take every subject of their grade.
    """
    clauses = [
        Student.status == "active",
        Student.grade_level == grade_level,
        or_(
            Student.subject_area == subject_area,
            Student.subject_area.is_(None),
            Student.subject_area == ""
        )
    ]
    if academic_period_id:
        clauses.append(Student.academic_period_id == academic_period_id)
    return and_(*clauses)


async def count_eligible_students(session, grade_level: str, subject_area: str,
                                  academic_period_id: Optional[int] = None) -> int:
    result = await session.execute(
        select(func.count(Student.id)).where(
            eligible_students_filter(grade_level, subject_area, academic_period_id)
        )
    )
    return result.scalar() or 0


class EvaluationService:
    """Evaluation definitions (assignments) and their grading roster."""

    def __init__(self, database: Database):
        self.database = database

    async def list_evaluations(
        self,
        grade_level: str,
        subject_area: str,
        academic_period_id: Optional[int] = None
    ) -> List[AssignmentWithStats]:
        query = (
            select(
                Assignment,
                func.count(AssignmentGrade.percentage),
                func.avg(AssignmentGrade.percentage)
            )
            .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
            .where(
                and_(
                    Assignment.grade_level == grade_level,
                    Assignment.subject_area == subject_area,
                    Assignment.is_active == True
                )
            )
        )
        if academic_period_id:
            query = query.where(Assignment.academic_period_id == academic_period_id)
        query = query.group_by(Assignment.id).order_by(desc(Assignment.created_at), desc(Assignment.id))

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()
            total_students = await count_eligible_students(session, grade_level, subject_area, academic_period_id)

        evaluations = []
        for assignment, total_grades, avg_grade in rows:
            evaluation = AssignmentWithStats.model_validate(assignment)
            evaluation.total_grades = total_grades
            evaluation.avg_grade = float(avg_grade) if avg_grade is not None else None
            evaluation.total_students = total_students
            evaluations.append(evaluation)
        return evaluations

    async def create_evaluation(self, evaluation_data: AssignmentCreate) -> AssignmentInDB:
        assignment = Assignment(
            academic_period_id=evaluation_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID,
            title=evaluation_data.title,
            description=evaluation_data.description,
            due_date=evaluation_data.due_date,
            max_points=evaluation_data.max_points,
            percentage=evaluation_data.percentage,
            grade_level=evaluation_data.grade_level,
            subject_area=evaluation_data.subject_area,
            teacher_name=evaluation_data.teacher_name or "Sistema",
            type=evaluation_data.type or "tarea",
            is_active=True
        )

        async with self.database.transaction() as session:
            session.add(assignment)
            await session.flush()
            await session.refresh(assignment)

        logger.info(f"Evaluation {assignment.id} created for {assignment.grade_level} - {assignment.subject_area}")
        return AssignmentInDB.model_validate(assignment)

    async def update_evaluation(self, evaluation_id: int, evaluation_data: AssignmentUpdate) -> AssignmentInDB:
        """
        Update an evaluation.

        Changing max_points recomputes the percentage of every grade already
        recorded for the evaluation, and the grade itself when it was derived
        from the percentage.
        """
        update_data = evaluation_data.model_dump(exclude_unset=True)

        async with self.database.transaction() as session:
            result = await session.execute(select(Assignment).where(Assignment.id == evaluation_id))
            assignment = result.scalars().first()
            if not assignment:
                raise NotFound(f"Evaluation {evaluation_id} not found")

            for key, value in update_data.items():
                if value is None and key in ("title", "max_points", "percentage", "type"):
                    continue
                setattr(assignment, key, value)

            if update_data.get("max_points") is not None:
                max_points = float(update_data["max_points"])
                grades_result = await session.execute(
                    select(AssignmentGrade).where(
                        and_(
                            AssignmentGrade.assignment_id == evaluation_id,
                            AssignmentGrade.points_earned.is_not(None)
                        )
                    )
                )
                for grade in grades_result.scalars().all():
                    percentage = float(grade.points_earned) * 100 / max_points
                    # A grade taken from the percentage follows it
                    if grade.grade is None or (
                        grade.percentage is not None and math.isclose(grade.grade, grade.percentage)
                    ):
                        grade.grade = percentage
                    grade.percentage = percentage

            await session.flush()
            await session.refresh(assignment)

        return AssignmentInDB.model_validate(assignment)

    async def delete_evaluation(self, evaluation_id: int) -> AssignmentInDB:
        """Soft delete: the evaluation is deactivated, its grades are kept."""
        async with self.database.transaction() as session:
            result = await session.execute(select(Assignment).where(Assignment.id == evaluation_id))
            assignment = result.scalars().first()
            if not assignment:
                raise NotFound(f"Evaluation {evaluation_id} not found")

            assignment.is_active = False
            await session.flush()
            await session.refresh(assignment)

        logger.info(f"Evaluation {evaluation_id} deactivated")
        return AssignmentInDB.model_validate(assignment)

    async def get_evaluation_grades(self, evaluation_id: int) -> List[EvaluationGradeRow]:
        """Eligible students of the evaluation with their grade, if recorded."""
        async with self.database.session() as session:
            result = await session.execute(select(Assignment).where(Assignment.id == evaluation_id))
            evaluation = result.scalars().first()
            if not evaluation:
                return []

            result = await session.execute(
                select(Student, AssignmentGrade)
                .outerjoin(
                    AssignmentGrade,
                    and_(
                        AssignmentGrade.student_id == Student.id,
                        AssignmentGrade.assignment_id == evaluation_id
                    )
                )
                .where(
                    eligible_students_filter(
                        evaluation.grade_level, evaluation.subject_area, evaluation.academic_period_id
                    )
                )
                .order_by(Student.first_surname, Student.second_surname, Student.first_name)
            )
            rows = result.all()

        roster = []
        for student, grade in rows:
            roster.append(EvaluationGradeRow(
                student_id=student.id,
                student_code=student.student_code,
                first_name=student.first_name,
                first_surname=student.first_surname,
                second_surname=student.second_surname,
                grade_id=grade.id if grade else None,
                points_earned=grade.points_earned if grade else None,
                grade=grade.grade if grade else None,
                percentage=grade.percentage if grade else None,
                is_submitted=grade.is_submitted if grade else None,
                is_late=grade.is_late if grade else None,
                notes=grade.notes if grade else None,
                feedback=grade.feedback if grade else None,
                assignment_id=evaluation.id,
                task_title=evaluation.title,
                max_points=evaluation.max_points,
                task_percentage=evaluation.percentage,
            ))
        logger.debug(f"{len(roster)} students found for evaluation {evaluation_id} ({evaluation.title})")
        return roster


class EvaluationStatistics:
    """Completion and average reports over evaluations and their grades."""

    def __init__(self, database: Database):
        self.database = database

    async def per_student_stats(
        self,
        student_id: int,
        grade_level: str,
        subject_area: str,
        academic_period_id: Optional[int] = None
    ) -> StudentEvaluationStats:
        """
        Evaluation statistics of one student for a grade and subject.

        Only recorded grades (a stored percentage) count as completed and
        enter the average; pending evaluations are not averaged as zero.
        """
        query = (
            select(
                Assignment.id,
                Assignment.percentage,
                AssignmentGrade.id,
                AssignmentGrade.percentage,
                AssignmentGrade.is_late
            )
            .outerjoin(
                AssignmentGrade,
                and_(
                    AssignmentGrade.assignment_id == Assignment.id,
                    AssignmentGrade.student_id == student_id
                )
            )
            .where(
                and_(
                    Assignment.grade_level == grade_level,
                    Assignment.subject_area == subject_area,
                    Assignment.is_active == True
                )
            )
        )
        if academic_period_id:
            query = query.where(Assignment.academic_period_id == academic_period_id)

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        total_evaluations = len({row[0] for row in rows})
        total_weight = sum(float(row[1] or 0) for row in rows)
        recorded = [row[3] for row in rows if row[3] is not None]
        late_submissions = sum(1 for row in rows if row[2] is not None and row[4])
        good_grades = sum(1 for percentage in recorded if percentage >= settings.GOOD_GRADE_THRESHOLD)

        completed_evaluations = len(recorded)
        completion_rate = completed_evaluations / total_evaluations * 100 if total_evaluations > 0 else 0
        avg_percentage = sum(recorded) / completed_evaluations if completed_evaluations > 0 else 0

        return StudentEvaluationStats(
            student_id=student_id,
            grade_level=grade_level,
            subject_area=subject_area,
            total_evaluations=total_evaluations,
            completed_evaluations=completed_evaluations,
            pending_evaluations=total_evaluations - completed_evaluations,
            completion_rate=completion_rate,
            avg_percentage=avg_percentage,
            total_weight=total_weight,
            late_submissions=late_submissions,
            good_grades=good_grades,
            min_grade=min(recorded) if recorded else None,
            max_grade=max(recorded) if recorded else None,
            calculated_at=datetime.now(timezone.utc),
        )

    async def class_summary(
        self,
        grade_level: Optional[str] = None,
        subject_area: Optional[str] = None,
        academic_period_id: Optional[int] = None
    ) -> List[TypeSummary]:
        """Totals and average percentage per grade level, subject and evaluation type."""
        query = (
            select(
                Assignment.grade_level,
                Assignment.subject_area,
                Assignment.type,
                func.count(distinct(Assignment.id)),
                func.count(AssignmentGrade.percentage),
                func.avg(AssignmentGrade.percentage),
                func.count(distinct(AssignmentGrade.student_id))
            )
            .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
            .where(Assignment.is_active == True)
        )
        if grade_level:
            query = query.where(Assignment.grade_level == grade_level)
        if subject_area:
            query = query.where(Assignment.subject_area == subject_area)
        if academic_period_id:
            query = query.where(Assignment.academic_period_id == academic_period_id)
        query = (
            query.group_by(Assignment.grade_level, Assignment.subject_area, Assignment.type)
            .order_by(Assignment.grade_level, Assignment.subject_area, Assignment.type)
        )

        summaries = []
        students_cache: Dict[Tuple[str, str], int] = {}
        async with self.database.session() as session:
            result = await session.execute(query)
            for grade, subject, type_, total_evaluations, total_grades, avg_pct, students_graded in result.all():
                if (grade, subject) not in students_cache:
                    students_cache[(grade, subject)] = await count_eligible_students(
                        session, grade, subject, academic_period_id
                    )
                summaries.append(TypeSummary(
                    grade_level=grade,
                    subject_area=subject,
                    type=type_,
                    total_evaluations=total_evaluations,
                    total_grades=total_grades,
                    avg_percentage=_round(avg_pct),
                    students_graded=students_graded,
                    total_students=students_cache[(grade, subject)],
                ))
        return summaries

    async def course_summary(
        self,
        grade_level: str,
        subject_area: str,
        academic_period_id: Optional[int] = None
    ) -> CourseSummary:
        """Single aggregate over every active evaluation of a grade and subject."""
        assignment_filter = and_(
            Assignment.grade_level == grade_level,
            Assignment.subject_area == subject_area,
            Assignment.is_active == True
        )
        if academic_period_id:
            assignment_filter = and_(assignment_filter, Assignment.academic_period_id == academic_period_id)

        async with self.database.session() as session:
            result = await session.execute(
                select(
                    func.count(distinct(Assignment.id)),
                    func.count(AssignmentGrade.percentage),
                    func.avg(AssignmentGrade.percentage),
                    func.count(distinct(AssignmentGrade.student_id))
                )
                .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
                .where(assignment_filter)
            )
            total_evaluations, total_submissions, avg_pct, students_with_grades = result.one()

            weight_result = await session.execute(
                select(func.coalesce(func.sum(Assignment.percentage), 0)).where(assignment_filter)
            )
            total_weight = weight_result.scalar()

        return CourseSummary(
            grade_level=grade_level,
            subject_area=subject_area,
            total_evaluations=total_evaluations or 0,
            total_submissions=total_submissions or 0,
            avg_class_percentage=float(avg_pct) if avg_pct is not None else None,
            total_weight_configured=float(total_weight or 0),
            students_with_grades=students_with_grades or 0,
        )

    async def type_stats(self) -> List[EvaluationTypeStats]:
        course_key = Assignment.grade_level + "-" + Assignment.subject_area
        query = (
            select(
                Assignment.type,
                func.count(distinct(Assignment.id)),
                func.count(AssignmentGrade.percentage),
                func.avg(AssignmentGrade.percentage),
                func.count(distinct(course_key))
            )
            .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
            .where(Assignment.is_active == True)
            .group_by(Assignment.type)
        )

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        stats = [
            EvaluationTypeStats(
                type=type_,
                total_evaluations=total_evaluations,
                total_submissions=total_submissions,
                avg_percentage=_round(avg_pct),
                courses_using=courses_using,
            )
            for type_, total_evaluations, total_submissions, avg_pct, courses_using in rows
        ]
        stats.sort(key=lambda s: (-s.total_evaluations, s.type))
        return stats

    async def grade_stats(self) -> List[EvaluationGradeLevelStats]:
        query = (
            select(
                Assignment.grade_level,
                func.count(distinct(Assignment.id)),
                func.count(distinct(Assignment.subject_area)),
                func.count(AssignmentGrade.percentage),
                func.avg(AssignmentGrade.percentage),
                func.count(distinct(AssignmentGrade.student_id))
            )
            .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
            .where(Assignment.is_active == True)
            .group_by(Assignment.grade_level)
            .order_by(Assignment.grade_level)
        )

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        return [
            EvaluationGradeLevelStats(
                grade_level=grade,
                total_evaluations=total_evaluations,
                subjects_count=subjects_count,
                total_grades=total_grades,
                avg_percentage=_round(avg_pct),
                students_graded=students_graded,
            )
            for grade, total_evaluations, subjects_count, total_grades, avg_pct, students_graded in rows
        ]

    async def progress(self, academic_period_id: Optional[int] = None) -> List[EvaluationProgress]:
        """
        Grading progress per grade level and subject.

        completion_percentage = recorded grades / (evaluations x eligible students) x 100,
        0 when there are no eligible students.
        """
        query = (
            select(
                Assignment.grade_level,
                Assignment.subject_area,
                func.count(distinct(Assignment.id)),
                func.count(AssignmentGrade.percentage)
            )
            .outerjoin(AssignmentGrade, AssignmentGrade.assignment_id == Assignment.id)
            .where(Assignment.is_active == True)
        )
        if academic_period_id:
            query = query.where(Assignment.academic_period_id == academic_period_id)
        query = query.group_by(Assignment.grade_level, Assignment.subject_area)

        progress = []
        async with self.database.session() as session:
            result = await session.execute(query)
            for grade, subject, total_evaluations, total_grades in result.all():
                total_students = await count_eligible_students(session, grade, subject, academic_period_id)
                expected = total_evaluations * total_students
                completion = round(total_grades * 100.0 / expected, 1) if expected > 0 else 0.0
                progress.append(EvaluationProgress(
                    grade_level=grade,
                    subject_area=subject,
                    total_evaluations=total_evaluations,
                    total_grades=total_grades,
                    total_students=total_students,
                    completion_percentage=completion,
                ))

        progress.sort(key=lambda p: (-p.completion_percentage, p.grade_level, p.subject_area))
        return progress
