from typing import Optional

from sqlalchemy.future import select
from sqlalchemy import and_, desc

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import InvalidTotalLessons
from gradebook.models.academics import LessonConfig
from gradebook.schemas.academics import LessonConfigResponse, LessonConfigSave


def default_lesson_config(grade_level: str, subject_area: str = "general") -> LessonConfigResponse:
    return LessonConfigResponse(
        grade_level=grade_level,
        subject_area=subject_area,
        lessons_per_week=settings.DEFAULT_LESSONS_PER_WEEK,
        total_weeks=settings.DEFAULT_TOTAL_WEEKS,
        total_lessons=settings.DEFAULT_TOTAL_LESSONS,
        teacher_name=None,
        is_default=True,
    )


class LessonConfigService:
    def __init__(self, database: Database):
        self.database = database

    async def get_lesson_config(
        self,
        grade_level: str,
        subject_area: str = "general",
        academic_period_id: Optional[int] = None
    ) -> LessonConfigResponse:
        """Stored lesson configuration, or the default one when none is saved."""
        query = select(LessonConfig).where(
            and_(
                LessonConfig.grade_level == grade_level,
                LessonConfig.subject_area == subject_area
            )
        )
        if academic_period_id:
            query = query.where(LessonConfig.academic_period_id == academic_period_id)
        query = query.order_by(desc(LessonConfig.created_at), desc(LessonConfig.id)).limit(1)

        async with self.database.session() as session:
            result = await session.execute(query)
            config = result.scalars().first()

        if not config:
            return default_lesson_config(grade_level, subject_area)

        return LessonConfigResponse(
            grade_level=config.grade_level,
            subject_area=config.subject_area,
            lessons_per_week=config.lessons_per_week,
            total_weeks=config.total_weeks,
            total_lessons=config.total_lessons,
            teacher_name=config.teacher_name,
        )

    async def save_lesson_config(self, config_data: LessonConfigSave) -> LessonConfigResponse:
        period_id = config_data.academic_period_id or settings.DEFAULT_ACADEMIC_PERIOD_ID
        total_lessons = config_data.total_lessons
        if total_lessons is None:
            total_lessons = config_data.lessons_per_week * config_data.total_weeks
        if total_lessons <= 0:
            raise InvalidTotalLessons(total_lessons)

        async with self.database.transaction() as session:
            result = await session.execute(
                select(LessonConfig).where(
                    and_(
                        LessonConfig.grade_level == config_data.grade_level,
                        LessonConfig.subject_area == config_data.subject_area,
                        LessonConfig.academic_period_id == period_id
                    )
                )
            )
            config = result.scalars().first()

            if config:
                config.lessons_per_week = config_data.lessons_per_week
                config.total_weeks = config_data.total_weeks
                config.total_lessons = total_lessons
                config.teacher_name = config_data.teacher_name
            else:
                config = LessonConfig(
                    academic_period_id=period_id,
                    grade_level=config_data.grade_level,
                    subject_area=config_data.subject_area,
                    lessons_per_week=config_data.lessons_per_week,
                    total_weeks=config_data.total_weeks,
                    total_lessons=total_lessons,
                    teacher_name=config_data.teacher_name
                )
                session.add(config)

        return LessonConfigResponse(
            grade_level=config_data.grade_level,
            subject_area=config_data.subject_area,
            lessons_per_week=config_data.lessons_per_week,
            total_weeks=config_data.total_weeks,
            total_lessons=total_lessons,
            teacher_name=config_data.teacher_name,
        )
