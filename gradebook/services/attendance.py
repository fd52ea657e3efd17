import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.future import select
from sqlalchemy import and_, delete, func

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import DataIntegrityError, InvalidTotalLessons
from gradebook.models.attendance import AttendanceRecord
from gradebook.models.students import Student
from gradebook.schemas.attendance import (
    AttendanceCounts, AttendanceGrade, AttendanceRecordCreate, AttendanceSaveResult,
    ClassAttendanceStats, ClassAttendanceStudent, ClassAttendanceSummary,
)
from gradebook.services.evaluations import eligible_students_filter
from gradebook.services.lessons import LessonConfigService
from gradebook.services.mep import absence_percentage, attendance_band, scale_band
from gradebook.services.scales import ScaleRegistry

logger = logging.getLogger(__name__)


class AttendanceAggregator:
    """
    Attendance storage and the MEP attendance grade.

    The attendance grade follows the ministry formula: lateness counts as
    half an absence, the absence percentage over the lessons of the course
    is mapped to a 0-10 band, and the band is rescaled to the maximum scale
    registered for the grade and subject.
    """

    def __init__(self, database: Database, scales: Optional[ScaleRegistry] = None,
                 lessons: Optional[LessonConfigService] = None):
        self.database = database
        self.scales = scales or ScaleRegistry(database)
        self.lessons = lessons or LessonConfigService(database)

    async def tally(
        self,
        student_id: int,
        grade_level: str,
        subject_area: str,
        academic_period_id: Optional[int] = None
    ) -> AttendanceCounts:
        """
        Count a student's attendance records per status.

        Raises:
            DataIntegrityError: If a stored status is not one of the five categories
        """
        query = select(AttendanceRecord.status, func.count(AttendanceRecord.id)).where(
            and_(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.grade_level == grade_level,
                AttendanceRecord.subject_area == subject_area
            )
        )
        if academic_period_id:
            query = query.where(AttendanceRecord.academic_period_id == academic_period_id)
        query = query.group_by(AttendanceRecord.status)

        async with self.database.session() as session:
            result = await session.execute(query)
            rows = result.all()

        try:
            return AttendanceCounts.from_rows(rows)
        except DataIntegrityError:
            logger.error(
                f"Unknown attendance status for student {student_id} "
                f"({grade_level} - {subject_area}): {[row[0] for row in rows]}"
            )
            raise

    async def calculate_attendance_grade(
        self,
        student_id: int,
        grade_level: str,
        subject_area: str = "general",
        total_lessons: Optional[int] = None,
        academic_period_id: Optional[int] = None
    ) -> AttendanceGrade:
        """
        MEP attendance grade of a student for a grade and subject.

        When total_lessons is not given, the lesson configuration of the
        grade/subject is used (200 lessons by default).
        """
        if total_lessons is None:
            config = await self.lessons.get_lesson_config(grade_level, subject_area, academic_period_id)
            total_lessons = config.total_lessons

        if total_lessons is None or total_lessons <= 0:
            raise InvalidTotalLessons(total_lessons)

        stats = await self.tally(student_id, grade_level, subject_area, academic_period_id)
        total_absences = stats.total_absences
        absence_pct = absence_percentage(total_absences, total_lessons)
        band = attendance_band(absence_pct)

        max_scale = await self.scales.get_scale(grade_level, subject_area or "general")

        return AttendanceGrade(
            student_id=student_id,
            grade_level=grade_level,
            subject_area=subject_area,
            total_lessons=total_lessons,
            stats=stats,
            total_records=stats.total_records,
            total_absences=total_absences,
            absence_percentage=absence_pct,
            attendance_percentage=100 - absence_pct,
            band=band,
            attendance_grade=scale_band(band, max_scale),
            max_scale=max_scale,
            calculated_at=datetime.now(timezone.utc),
        )

    async def class_attendance_stats(
        self,
        grade_level: str,
        subject_area: str = "general",
        total_lessons: Optional[int] = None,
        academic_period_id: Optional[int] = None
    ) -> ClassAttendanceStats:
        """
        MEP attendance grade of every active student of a grade, with class averages.

        Averages are 0 for a grade without students.
        """
        if total_lessons is None:
            config = await self.lessons.get_lesson_config(grade_level, subject_area, academic_period_id)
            total_lessons = config.total_lessons
        if total_lessons <= 0:
            raise InvalidTotalLessons(total_lessons)

        async with self.database.session() as session:
            result = await session.execute(
                select(Student)
                .where(eligible_students_filter(grade_level, subject_area, academic_period_id))
                .order_by(Student.first_surname, Student.second_surname, Student.first_name)
            )
            students = result.scalars().all()

        rows = []
        for student in students:
            mep_stats = await self.calculate_attendance_grade(
                student.id, grade_level, subject_area, total_lessons, academic_period_id
            )
            rows.append(ClassAttendanceStudent(
                student_id=student.id,
                student_code=student.student_code,
                first_name=student.first_name,
                first_surname=student.first_surname,
                second_surname=student.second_surname,
                mep_stats=mep_stats,
            ))

        total_students = len(rows)
        summary = ClassAttendanceSummary(
            total_students=total_students,
            average_attendance=(
                sum(row.mep_stats.attendance_percentage for row in rows) / total_students if total_students else 0
            ),
            average_grade=(
                sum(row.mep_stats.attendance_grade for row in rows) / total_students if total_students else 0
            ),
        )
        logger.info(
            f"Class attendance for {grade_level} - {subject_area}: {total_students} students, "
            f"average grade {summary.average_grade:.2f}"
        )
        return ClassAttendanceStats(
            grade_level=grade_level,
            subject_area=subject_area,
            total_lessons=total_lessons,
            data=rows,
            summary=summary,
        )

    async def save_attendance(self, attendance_data: AttendanceRecordCreate) -> AttendanceSaveResult:
        """Create the record, or update the existing one for the same student, day, grade and subject."""
        period_id = attendance_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID

        async with self.database.transaction() as session:
            existing_result = await session.execute(
                select(AttendanceRecord).where(
                    and_(
                        AttendanceRecord.student_id == attendance_data.student_id,
                        AttendanceRecord.date == attendance_data.date,
                        AttendanceRecord.grade_level == attendance_data.grade_level,
                        AttendanceRecord.subject_area == attendance_data.subject_area,
                        AttendanceRecord.academic_period_id == period_id
                    )
                )
            )
            existing_record = existing_result.scalars().first()

            if existing_record:
                # Update existing record
                existing_record.status = attendance_data.status.value
                existing_record.arrival_time = attendance_data.arrival_time
                existing_record.justification = attendance_data.justification
                existing_record.notes = attendance_data.notes
                record = existing_record
                action = "updated"
            else:
                # Create new record
                record = AttendanceRecord(
                    academic_period_id=period_id,
                    student_id=attendance_data.student_id,
                    date=attendance_data.date,
                    status=attendance_data.status.value,
                    arrival_time=attendance_data.arrival_time,
                    justification=attendance_data.justification,
                    notes=attendance_data.notes,
                    lesson_number=attendance_data.lesson_number or 1,
                    grade_level=attendance_data.grade_level,
                    subject_area=attendance_data.subject_area
                )
                session.add(record)
                action = "created"

            await session.flush()
            record_id = record.id

        return AttendanceSaveResult(id=record_id, action=action)

    async def get_attendance_by_date(
        self,
        attendance_date: date,
        grade_level: str,
        subject_area: Optional[str] = None,
        academic_period_id: Optional[int] = None
    ) -> List[AttendanceRecord]:
        query = select(AttendanceRecord).join(Student, AttendanceRecord.student_id == Student.id).where(
            and_(
                AttendanceRecord.date == attendance_date,
                AttendanceRecord.grade_level == grade_level,
                Student.status == "active"
            )
        )
        if subject_area:
            query = query.where(AttendanceRecord.subject_area == subject_area)
        if academic_period_id:
            query = query.where(AttendanceRecord.academic_period_id == academic_period_id)
        query = query.order_by(Student.first_surname, Student.second_surname, Student.first_name)

        async with self.database.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def delete_attendance_by_date(
        self,
        attendance_date: date,
        grade_level: str,
        subject_area: Optional[str] = None,
        academic_period_id: Optional[int] = None
    ) -> int:
        statement = delete(AttendanceRecord).where(
            and_(
                AttendanceRecord.date == attendance_date,
                AttendanceRecord.grade_level == grade_level
            )
        )
        if subject_area:
            statement = statement.where(AttendanceRecord.subject_area == subject_area)
        if academic_period_id:
            statement = statement.where(AttendanceRecord.academic_period_id == academic_period_id)

        async with self.database.transaction() as session:
            result = await session.execute(statement)

        logger.info(f"Deleted {result.rowcount} attendance records for {grade_level} on {attendance_date}")
        return result.rowcount
