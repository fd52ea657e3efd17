import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from gradebook.exceptions import InvalidScale, InvalidTotalLessons
from gradebook.models import GradeScaleConfig
from gradebook.schemas.academics import LessonConfigSave
from gradebook.services.lessons import LessonConfigService
from gradebook.services.scales import ScaleRegistry

pytestmark = pytest.mark.anyio


async def test_default_scale(database):
    assert await ScaleRegistry(database).get_scale("7-1", "Matematicas") == 5.0


async def test_set_scale_is_idempotent(database):
    registry = ScaleRegistry(database)

    await registry.set_scale("7-1", "Matematicas", 10)
    await registry.set_scale("7-1", "Matematicas", 10)

    assert await registry.get_scale("7-1", "Matematicas") == 10.0
    async with database.session() as session:
        result = await session.execute(select(func.count(GradeScaleConfig.id)))
        assert result.scalar() == 1


async def test_set_scale_replaces_previous_value(database):
    registry = ScaleRegistry(database)

    await registry.set_scale("7-1", "Matematicas", 10)
    await registry.set_scale("7-1", "Matematicas", 5)

    assert await registry.get_scale("7-1", "Matematicas") == 5.0
    assert await registry.get_scale("7-1", "Ciencias") == 5.0


@pytest.mark.parametrize("max_scale", [0, -1, float("nan"), float("inf"), "10", None, True])
async def test_set_scale_rejects_invalid_values(database, max_scale):
    registry = ScaleRegistry(database)
    await registry.set_scale("7-1", "Matematicas", 20)

    with pytest.raises(InvalidScale):
        await registry.set_scale("7-1", "Matematicas", max_scale)

    assert await registry.get_scale("7-1", "Matematicas") == 20.0


async def test_lesson_config_defaults(database):
    config = await LessonConfigService(database).get_lesson_config("7-1", "Matematicas")

    assert config.is_default
    assert config.lessons_per_week == 5
    assert config.total_weeks == 40
    assert config.total_lessons == 200


async def test_lesson_config_save_and_replace(database):
    service = LessonConfigService(database)

    saved = await service.save_lesson_config(LessonConfigSave(
        grade_level="7-1", subject_area="Matematicas", lessons_per_week=3, total_weeks=36
    ))
    assert saved.total_lessons == 108

    await service.save_lesson_config(LessonConfigSave(
        grade_level="7-1", subject_area="Matematicas", lessons_per_week=4, total_weeks=36, total_lessons=150
    ))
    config = await service.get_lesson_config("7-1", "Matematicas")

    assert not config.is_default
    assert config.lessons_per_week == 4
    assert config.total_lessons == 150


async def test_lesson_config_rejects_zero_lessons(database):
    data = LessonConfigSave.model_construct(
        grade_level="7-1", subject_area="general", lessons_per_week=5, total_weeks=40,
        total_lessons=0, teacher_name=None, academic_period_id=None
    )

    with pytest.raises(InvalidTotalLessons):
        await LessonConfigService(database).save_lesson_config(data)
