from datetime import date

import pytest

from gradebook.exceptions import NotFound
from gradebook.schemas.indicators import DailyEvaluationSave, IndicatorCreate, IndicatorScoreInput
from gradebook.services.indicators import DailyEvaluationService, IndicatorService
from gradebook.services.periods import delete_scoped_data

pytestmark = pytest.mark.anyio


@pytest.fixture
async def indicators(database):
    service = IndicatorService(database)
    participation = await service.create_indicator(IndicatorCreate(
        grade_level="7-1", subject_area="Matematicas", indicator_name="Participa en clase"
    ))
    teamwork = await service.create_indicator(IndicatorCreate(
        grade_level="7-1", subject_area="Matematicas", indicator_name="Trabaja en equipo"
    ))
    return participation.id, teamwork.id


def daily_evaluation(student_id, day, scores, **overrides):
    data = dict(
        student_id=student_id,
        grade_level="7-1",
        subject_area="Matematicas",
        evaluation_date=day,
        scores=[IndicatorScoreInput(indicator_id=indicator_id, score=score) for indicator_id, score in scores],
    )
    data.update(overrides)
    return DailyEvaluationSave(**data)


async def test_save_and_replace_daily_evaluation(database, add_student, indicators):
    participation, teamwork = indicators
    student_id = await add_student()
    service = DailyEvaluationService(database)
    day = date(2024, 4, 8)

    created = await service.save_daily_evaluation(daily_evaluation(student_id, day, [(participation, 3), (teamwork, 2)]))
    assert created.action == "created"
    assert created.scores_saved == 2

    rows = await service.get_evaluation_by_date("7-1", "Matematicas", day)
    assert [(row.indicator_id, row.score) for row in rows] == [(participation, 3.0), (teamwork, 2.0)]

    updated = await service.save_daily_evaluation(daily_evaluation(student_id, day, [(teamwork, 1)], notes="Llegó tarde"))
    assert updated.action == "updated"
    assert updated.id == created.id

    rows = await service.get_evaluation_by_date("7-1", "Matematicas", day)
    assert [(row.indicator_id, row.score, row.notes) for row in rows] == [(teamwork, 1.0, "Llegó tarde")]


async def test_unknown_indicator_saves_nothing(database, add_student, indicators):
    participation, _ = indicators
    student_id = await add_student()
    service = DailyEvaluationService(database)
    day = date(2024, 4, 8)

    with pytest.raises(NotFound):
        await service.save_daily_evaluation(daily_evaluation(student_id, day, [(participation, 3), (999, 2)]))

    assert await service.get_evaluation_by_date("7-1", "Matematicas", day) == []


async def test_indicator_of_another_subject_is_rejected(database, add_student, indicators):
    participation, _ = indicators
    student_id = await add_student()

    with pytest.raises(NotFound):
        await DailyEvaluationService(database).save_daily_evaluation(
            daily_evaluation(student_id, date(2024, 4, 8), [(participation, 3)], subject_area="Ciencias")
        )


async def test_evaluation_without_scores_is_listed(database, add_student):
    student_id = await add_student()
    service = DailyEvaluationService(database)
    day = date(2024, 4, 8)

    await service.save_daily_evaluation(daily_evaluation(student_id, day, []))
    rows = await service.get_evaluation_by_date("7-1", "Matematicas", day)

    assert len(rows) == 1
    assert rows[0].indicator_id is None


async def test_cotidiano_history(database, add_student, indicators):
    participation, teamwork = indicators
    mora = await add_student(first_name="Ana", first_surname="Mora", second_surname="Solis")
    vargas = await add_student(first_name="Luis", first_surname="Vargas")
    service = DailyEvaluationService(database)
    await service.save_daily_evaluation(daily_evaluation(vargas, date(2024, 4, 8), [(participation, 2)]))
    await service.save_daily_evaluation(daily_evaluation(mora, date(2024, 4, 8), [(teamwork, 3), (participation, 1)]))
    await service.save_daily_evaluation(daily_evaluation(mora, date(2024, 4, 1), [(participation, 2)]))

    history = await service.get_cotidiano_history("7-1", "Matematicas")

    assert [(row.evaluation_date, row.student_name, row.indicator_name, row.score) for row in history] == [
        (date(2024, 4, 8), "Mora Solis Ana", "Participa en clase", 1.0),
        (date(2024, 4, 8), "Mora Solis Ana", "Trabaja en equipo", 3.0),
        (date(2024, 4, 8), "Vargas Luis", "Participa en clase", 2.0),
        (date(2024, 4, 1), "Mora Solis Ana", "Participa en clase", 2.0),
    ]
    assert await service.get_cotidiano_history("7-1", "Matematicas", academic_period_id=2) == []


async def test_period_cleanup_removes_daily_evaluations(database, add_student, indicators):
    participation, _ = indicators
    student_id = await add_student()
    service = DailyEvaluationService(database)
    await service.save_daily_evaluation(daily_evaluation(student_id, date(2024, 4, 8), [(participation, 3)]))

    result = await delete_scoped_data(database, 1)

    assert result.daily_evaluations_deleted == 1
    assert await service.get_cotidiano_history("7-1", "Matematicas") == []
    assert len(await IndicatorService(database).list_indicators("7-1", "Matematicas")) == 2
