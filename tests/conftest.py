import os
import sys
import logging
from datetime import date, timedelta
from typing import Iterable

import pytest
from httpx import AsyncClient, ASGITransport

from gradebook.database import Database
from gradebook.main import create_app
from gradebook.models import Student, AttendanceRecord
from gradebook.schemas.academics import AssignmentCreate
from gradebook.services.evaluations import EvaluationService


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def database(tmp_path):
    db = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'gradebook.db'}", echo=False)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
async def client(database):
    app = create_app(database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def add_student(database):
    counter = {"n": 0}

    async def _add_student(grade_level: str = "7-1", **overrides) -> int:
        counter["n"] += 1
        data = dict(
            academic_period_id=1,
            student_code=f"S{counter['n']:03d}",
            first_name=f"Student{counter['n']}",
            first_surname=f"Surname{counter['n']:03d}",
            grade_level=grade_level,
            status="active",
        )
        data.update(overrides)
        async with database.transaction() as session:
            student = Student(**data)
            session.add(student)
            await session.flush()
            return student.id

    return _add_student


@pytest.fixture
def add_attendance(database):
    async def _add_attendance(student_id: int, statuses: Iterable[str], grade_level: str = "7-1",
                              subject_area: str = "general", academic_period_id: int = 1) -> None:
        start = date(2024, 2, 5)
        async with database.transaction() as session:
            for offset, status in enumerate(statuses):
                session.add(AttendanceRecord(
                    academic_period_id=academic_period_id,
                    student_id=student_id,
                    date=start + timedelta(days=offset),
                    status=status,
                    grade_level=grade_level,
                    subject_area=subject_area,
                ))

    return _add_attendance


@pytest.fixture
def add_evaluation(database):
    async def _add_evaluation(max_points: float = 50, percentage: float = 20, grade_level: str = "7-1",
                              subject_area: str = "Matematicas", type: str = "tarea", title: str = "Tarea") -> int:
        evaluation = await EvaluationService(database).create_evaluation(AssignmentCreate(
            title=title,
            max_points=max_points,
            percentage=percentage,
            grade_level=grade_level,
            subject_area=subject_area,
            type=type,
        ))
        return evaluation.id

    return _add_evaluation
