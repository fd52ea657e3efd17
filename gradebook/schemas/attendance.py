from datetime import datetime, date
from typing import Optional, List, Iterable, Tuple
from pydantic import BaseModel, Field
from enum import Enum

from gradebook.exceptions import DataIntegrityError


class AttendanceStatusEnum(str, Enum):
    present = "present"
    late_justified = "late_justified"
    late_unjustified = "late_unjustified"
    absent_justified = "absent_justified"
    absent_unjustified = "absent_unjustified"


# Attendance Record schemas
class AttendanceRecordBase(BaseModel):
    date: date
    status: AttendanceStatusEnum
    arrival_time: Optional[str] = None
    justification: Optional[str] = None
    notes: Optional[str] = None
    lesson_number: int = 1


class AttendanceRecordCreate(AttendanceRecordBase):
    student_id: int
    grade_level: str
    subject_area: str = "general"
    academic_period_id: Optional[int] = None


class AttendanceRecordInDB(AttendanceRecordBase):
    id: int
    academic_period_id: int
    student_id: int
    grade_level: str
    subject_area: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendanceSaveResult(BaseModel):
    id: int
    action: str


class AttendanceDeleteResult(BaseModel):
    deleted: int


# Attendance tallies
class AttendanceCounts(BaseModel):
    present: int = 0
    late_justified: int = 0
    late_unjustified: int = 0
    absent_justified: int = 0
    absent_unjustified: int = 0

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[str, int]]) -> "AttendanceCounts":
        """
        Build the tally from (status, count) rows.

        Raises:
            DataIntegrityError: If a status outside the five categories is found
        """
        counts = {}
        for status, count in rows:
            try:
                key = AttendanceStatusEnum(status).value
            except ValueError:
                raise DataIntegrityError(f"Unknown attendance status: {status!r}")
            counts[key] = counts.get(key, 0) + int(count)
        return cls(**counts)

    @property
    def total_records(self) -> int:
        return (
            self.present + self.late_justified + self.late_unjustified
            + self.absent_justified + self.absent_unjustified
        )

    @property
    def total_absences(self) -> float:
        # Lateness counts as half an absence, justified or not
        return self.absent_unjustified + 0.5 * self.late_unjustified + 0.5 * self.late_justified


class AttendanceGrade(BaseModel):
    student_id: int
    grade_level: str
    subject_area: str
    total_lessons: int
    stats: AttendanceCounts
    total_records: int
    total_absences: float
    absence_percentage: float
    attendance_percentage: float
    band: int = Field(..., ge=0, le=10)
    attendance_grade: float
    max_scale: float
    calculated_at: datetime


# Class-wide MEP report
class ClassAttendanceStudent(BaseModel):
    student_id: int
    student_code: str
    first_name: str
    first_surname: str
    second_surname: Optional[str] = None
    mep_stats: AttendanceGrade


class ClassAttendanceSummary(BaseModel):
    total_students: int
    average_attendance: float
    average_grade: float


class ClassAttendanceStats(BaseModel):
    grade_level: str
    subject_area: str
    total_lessons: int
    data: List[ClassAttendanceStudent]
    summary: ClassAttendanceSummary
