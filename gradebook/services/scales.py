import logging
import math
from decimal import Decimal

from sqlalchemy.future import select
from sqlalchemy import and_

from gradebook.config import settings
from gradebook.database import Database
from gradebook.exceptions import InvalidScale
from gradebook.models.academics import GradeScaleConfig

logger = logging.getLogger(__name__)


class ScaleRegistry:
    """Maximum grade scale per (grade level, subject area)."""

    def __init__(self, database: Database):
        self.database = database

    async def get_scale(self, grade_level: str, subject_area: str) -> float:
        async with self.database.session() as session:
            result = await session.execute(
                select(GradeScaleConfig.max_scale).where(
                    and_(
                        GradeScaleConfig.grade_level == grade_level,
                        GradeScaleConfig.subject_area == subject_area
                    )
                )
            )
            max_scale = result.scalars().first()

        if max_scale is None:
            return settings.DEFAULT_MAX_SCALE
        return float(max_scale)

    async def set_scale(self, grade_level: str, subject_area: str, max_scale: float) -> float:
        """
        Register the maximum scale, replacing any previous value.

        Raises:
            InvalidScale: If max_scale is not a positive number
        """
        if isinstance(max_scale, bool) or not isinstance(max_scale, (int, float, Decimal)):
            raise InvalidScale(max_scale)
        if not math.isfinite(max_scale) or max_scale <= 0:
            raise InvalidScale(max_scale)

        async with self.database.transaction() as session:
            result = await session.execute(
                select(GradeScaleConfig).where(
                    and_(
                        GradeScaleConfig.grade_level == grade_level,
                        GradeScaleConfig.subject_area == subject_area
                    )
                )
            )
            config = result.scalars().first()

            if config:
                config.max_scale = max_scale
            else:
                session.add(GradeScaleConfig(
                    grade_level=grade_level,
                    subject_area=subject_area,
                    max_scale=max_scale
                ))

        logger.info(f"Grade scale for {grade_level} - {subject_area} set to {max_scale}")
        return float(max_scale)
