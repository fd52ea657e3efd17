import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from gradebook.exceptions import BatchPartialFailure
from gradebook.models import AssignmentGrade, GradeSubject
from gradebook.schemas.academics import GradeInput, GradeSubjectAssign
from gradebook.services.batch import BatchGradeWriter, GradeSubjectService
from gradebook.services.evaluations import EvaluationService

pytestmark = pytest.mark.anyio


async def count_rows(database, model) -> int:
    async with database.session() as session:
        result = await session.execute(select(func.count(model.id)))
        return result.scalar()


async def stored_grade(database, assignment_id, student_id):
    async with database.session() as session:
        result = await session.execute(
            select(AssignmentGrade).where(
                AssignmentGrade.assignment_id == assignment_id,
                AssignmentGrade.student_id == student_id
            )
        )
        return result.scalars().first()


async def test_empty_batch_is_a_no_op(database):
    result = await BatchGradeWriter(database).save_batch([])

    assert result.saved_count == 0
    assert result.error_count == 0


async def test_percentage_is_recomputed_from_points(database, add_student, add_evaluation):
    student_id = await add_student()
    evaluation_id = await add_evaluation(max_points=50)

    result = await BatchGradeWriter(database).save_batch([
        GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=35, percentage=12)
    ])

    assert result.saved_count == 1
    grade = await stored_grade(database, evaluation_id, student_id)
    assert grade.percentage == 70.0
    assert grade.grade == 70.0
    assert grade.submitted_at is not None


async def test_batch_upserts_existing_grade(database, add_student, add_evaluation):
    student_id = await add_student()
    evaluation_id = await add_evaluation(max_points=20)
    writer = BatchGradeWriter(database)

    await writer.save_batch([GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=10)])
    await writer.save_batch([
        GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=15, feedback="Mejoró")
    ])

    assert await count_rows(database, AssignmentGrade) == 1
    grade = await stored_grade(database, evaluation_id, student_id)
    assert grade.percentage == 75.0
    assert grade.feedback == "Mejoró"


async def test_failing_row_rolls_back_whole_batch(database, add_student, add_evaluation, caplog):
    students = [await add_student() for _ in range(5)]
    evaluation_id = await add_evaluation(max_points=50)
    writer = BatchGradeWriter(database)
    await writer.save_batch([GradeInput(assignment_id=evaluation_id, student_id=students[0], points_earned=10)])

    grades = [
        GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=40)
        for student_id in students
    ]
    grades[2] = GradeInput(assignment_id=9999, student_id=students[2], points_earned=40)

    with pytest.raises(BatchPartialFailure) as exc_info:
        await writer.save_batch(grades)

    assert exc_info.value.error_count == 1
    assert "Grade 3" in exc_info.value.errors[0]
    assert exc_info.value.attempted == 5
    assert "Rollback: 5 grades attempted, 1 errors" in caplog.text
    assert await count_rows(database, AssignmentGrade) == 1
    grade = await stored_grade(database, evaluation_id, students[0])
    assert grade.percentage == 20.0


async def test_storage_failure_rolls_back_whole_batch(database, add_student, add_evaluation):
    students = [await add_student() for _ in range(5)]
    evaluation_id = await add_evaluation(max_points=50)

    grades = [
        GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=40)
        for student_id in students
    ]
    # Skips request validation; rejected by the points_earned check constraint
    grades[2] = GradeInput.model_construct(assignment_id=evaluation_id, student_id=students[2], points_earned=-5)

    with pytest.raises(BatchPartialFailure) as exc_info:
        await BatchGradeWriter(database).save_batch(grades)

    assert exc_info.value.error_count == 1
    assert "Grade 3" in exc_info.value.errors[0]
    assert await count_rows(database, AssignmentGrade) == 0

    # the store is still usable after the rollback
    result = await BatchGradeWriter(database).save_batch(grades[:2])
    assert result.saved_count == 2


async def test_inactive_evaluation_rejects_grades(database, add_student, add_evaluation):
    student_id = await add_student()
    evaluation_id = await add_evaluation()
    await EvaluationService(database).delete_evaluation(evaluation_id)

    with pytest.raises(BatchPartialFailure):
        await BatchGradeWriter(database).save_batch([
            GradeInput(assignment_id=evaluation_id, student_id=student_id, points_earned=10)
        ])

    assert await count_rows(database, AssignmentGrade) == 0


async def test_error_sample_is_bounded(database, add_student):
    student_id = await add_student()
    grades = [GradeInput(assignment_id=1000 + n, student_id=student_id, points_earned=1) for n in range(7)]

    with pytest.raises(BatchPartialFailure) as exc_info:
        await BatchGradeWriter(database).save_batch(grades)

    assert exc_info.value.error_count == 7
    assert len(exc_info.value.errors) == 5
    assert str(exc_info.value).endswith("...")


async def test_assign_subjects_to_grades(database):
    service = GradeSubjectService(database)

    result = await service.assign_subjects_to_grades(GradeSubjectAssign(
        grades=["7-1", "7-2"], subjects=["Matematicas", "Ciencias"], teacher_name="Ana"
    ))

    assert result.success_count == 4
    assert result.affected_grades == 2
    assert result.message == "4 assignments completed in 2 grades"
    subjects = await service.get_subjects_by_grade("7-1")
    assert [s.subject_name for s in subjects] == ["Ciencias", "Matematicas"]

    # assigning again does not duplicate pairs
    await service.assign_subjects_to_grades(GradeSubjectAssign(grades=["7-1"], subjects=["Ciencias"]))
    assert await count_rows(database, GradeSubject) == 4


async def test_assign_subjects_rolls_back_on_invalid_pair(database):
    service = GradeSubjectService(database)

    with pytest.raises(BatchPartialFailure) as exc_info:
        await service.assign_subjects_to_grades(GradeSubjectAssign(
            grades=["7-1", "7-2"], subjects=["Matematicas", " "]
        ))

    assert exc_info.value.error_count == 2
    assert await count_rows(database, GradeSubject) == 0


async def test_remove_subject_from_grade(database):
    service = GradeSubjectService(database)
    await service.assign_subjects_to_grades(GradeSubjectAssign(
        grades=["7-1"], subjects=["Matematicas", "Ciencias"]
    ))

    assert await service.remove_subject_from_grade("7-1", "Ciencias") == 1
    assert await service.remove_subject_from_grade("7-1", "Ciencias") == 0
    subjects = await service.get_subjects_by_grade("7-1")
    assert [s.subject_name for s in subjects] == ["Matematicas"]
