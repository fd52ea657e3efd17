from datetime import date

import pytest

from gradebook.database import Database
from gradebook.exceptions import InvalidTotalLessons, NotInitialized, StorageError
from gradebook.schemas.academics import LessonConfigSave
from gradebook.schemas.attendance import AttendanceRecordCreate, AttendanceStatusEnum
from gradebook.services.attendance import AttendanceAggregator
from gradebook.services.lessons import LessonConfigService
from gradebook.services.scales import ScaleRegistry

pytestmark = pytest.mark.anyio

SCENARIO = ["present"] * 80 + ["absent_unjustified"] * 4 + ["late_unjustified"] * 2


async def test_tally_counts_each_status(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)

    counts = await AttendanceAggregator(database).tally(student_id, "7-1", "general")

    assert counts.present == 80
    assert counts.absent_unjustified == 4
    assert counts.late_unjustified == 2
    assert counts.late_justified == 0
    assert counts.absent_justified == 0
    assert counts.total_absences == 5.0


async def test_tally_is_repeatable(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)
    aggregator = AttendanceAggregator(database)

    first = await aggregator.tally(student_id, "7-1", "general")
    second = await aggregator.tally(student_id, "7-1", "general")

    assert first == second


async def test_tally_is_scoped_to_grade_and_subject(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, ["absent_unjustified"] * 3, subject_area="Ciencias")

    counts = await AttendanceAggregator(database).tally(student_id, "7-1", "general")

    assert counts.total_records == 0


async def test_grade_with_200_lessons(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)

    grade = await AttendanceAggregator(database).calculate_attendance_grade(
        student_id, "7-1", "general", total_lessons=200
    )

    assert grade.total_absences == 5.0
    assert grade.absence_percentage == 2.5
    assert grade.attendance_percentage == 97.5
    assert grade.band == 10
    assert grade.max_scale == 5.0
    assert grade.attendance_grade == 5.0
    assert grade.total_records == 86


async def test_grade_with_20_lessons(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)

    grade = await AttendanceAggregator(database).calculate_attendance_grade(
        student_id, "7-1", "general", total_lessons=20
    )

    assert grade.absence_percentage == 25.0
    assert grade.band == 6
    assert grade.attendance_grade == 3.0


async def test_grade_uses_registered_scale(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)
    await ScaleRegistry(database).set_scale("7-1", "general", 10)

    grade = await AttendanceAggregator(database).calculate_attendance_grade(
        student_id, "7-1", "general", total_lessons=20
    )

    assert grade.max_scale == 10.0
    assert grade.attendance_grade == 6.0


async def test_grade_falls_back_to_lesson_configuration(database, add_student, add_attendance):
    student_id = await add_student()
    await add_attendance(student_id, SCENARIO)
    aggregator = AttendanceAggregator(database)

    default_grade = await aggregator.calculate_attendance_grade(student_id, "7-1", "general")
    assert default_grade.total_lessons == 200
    assert default_grade.band == 10

    await LessonConfigService(database).save_lesson_config(LessonConfigSave(
        grade_level="7-1", subject_area="general", lessons_per_week=1, total_weeks=20
    ))
    configured_grade = await aggregator.calculate_attendance_grade(student_id, "7-1", "general")

    assert configured_grade.total_lessons == 20
    assert configured_grade.band == 6


async def test_student_without_records_gets_full_grade(database, add_student):
    student_id = await add_student()

    grade = await AttendanceAggregator(database).calculate_attendance_grade(
        student_id, "7-1", "general", total_lessons=200
    )

    assert grade.total_records == 0
    assert grade.band == 10
    assert grade.attendance_grade == 5.0


@pytest.mark.parametrize("total_lessons", [0, -10])
async def test_grade_rejects_non_positive_lessons(database, add_student, total_lessons):
    student_id = await add_student()

    with pytest.raises(InvalidTotalLessons):
        await AttendanceAggregator(database).calculate_attendance_grade(
            student_id, "7-1", "general", total_lessons=total_lessons
        )


async def test_save_attendance_updates_existing_record(database, add_student):
    student_id = await add_student()
    aggregator = AttendanceAggregator(database)
    record = AttendanceRecordCreate(
        student_id=student_id, date=date(2024, 3, 4), status="present", grade_level="7-1"
    )

    created = await aggregator.save_attendance(record)
    late = record.model_copy(update={"status": AttendanceStatusEnum.late_justified})
    updated = await aggregator.save_attendance(late)

    assert created.action == "created"
    assert updated.action == "updated"
    assert updated.id == created.id
    counts = await aggregator.tally(student_id, "7-1", "general")
    assert counts.total_records == 1
    assert counts.late_justified == 1


async def test_attendance_by_date_lists_and_deletes(database, add_student):
    first = await add_student(first_surname="Alvarado")
    second = await add_student(first_surname="Brenes")
    inactive = await add_student(first_surname="Castro", status="inactive")
    aggregator = AttendanceAggregator(database)
    day = date(2024, 3, 4)
    for student_id in (second, first, inactive):
        await aggregator.save_attendance(AttendanceRecordCreate(
            student_id=student_id, date=day, status="present", grade_level="7-1"
        ))

    records = await aggregator.get_attendance_by_date(day, "7-1")
    assert [r.student_id for r in records] == [first, second]

    deleted = await aggregator.delete_attendance_by_date(day, "7-1")
    assert deleted == 3
    assert await aggregator.get_attendance_by_date(day, "7-1") == []


async def test_operations_fail_before_initialize(tmp_path):
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'idle.db'}")

    with pytest.raises(NotInitialized):
        await AttendanceAggregator(database).tally(1, "7-1", "general")


async def test_class_attendance_stats(database, add_student, add_attendance):
    absent = await add_student(first_surname="Alvarado")
    perfect = await add_student(first_surname="Brenes")
    await add_student(first_surname="Castro", status="inactive")
    await add_student(grade_level="8-1")
    await add_attendance(absent, SCENARIO)

    stats = await AttendanceAggregator(database).class_attendance_stats("7-1", "general", total_lessons=20)

    assert [row.student_id for row in stats.data] == [absent, perfect]
    assert stats.data[0].mep_stats.attendance_grade == 3.0
    assert stats.data[1].mep_stats.attendance_grade == 5.0
    assert stats.summary.total_students == 2
    assert stats.summary.average_attendance == 87.5
    assert stats.summary.average_grade == 4.0


async def test_class_attendance_stats_for_empty_grade(database):
    stats = await AttendanceAggregator(database).class_attendance_stats("9-9", "general")

    assert stats.total_lessons == 200
    assert stats.data == []
    assert stats.summary.total_students == 0
    assert stats.summary.average_attendance == 0
    assert stats.summary.average_grade == 0


async def test_store_rejects_unknown_status(database, add_student, add_attendance):
    student_id = await add_student()

    with pytest.raises(StorageError):
        await add_attendance(student_id, ["present", "excused"])

    counts = await AttendanceAggregator(database).tally(student_id, "7-1", "general")
    assert counts.present == 0
