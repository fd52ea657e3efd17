from typing import Tuple

from gradebook.exceptions import InvalidScale, InvalidTotalLessons

# Upper bound (inclusive) of the absence percentage for each band, best band first
MEP_BANDS: Tuple[Tuple[float, int], ...] = (
    (5, 10),
    (10, 9),
    (15, 8),
    (20, 7),
    (25, 6),
    (30, 5),
    (35, 4),
    (40, 3),
    (45, 2),
    (50, 1),
)

def absence_percentage(total_absences: float, total_lessons: int) -> float:
    """
    Share of the lessons of the course the student missed.

    Args:
        total_absences: Absence equivalents (lateness already weighted)
        total_lessons: Number of lessons in the course

    Returns:
        Absence percentage (0-100, may exceed 100 with inconsistent data)

    Raises:
        InvalidTotalLessons: If total_lessons is not greater than zero
    """
    if total_lessons is None or total_lessons <= 0:
        raise InvalidTotalLessons(total_lessons)

    return total_absences * 100 / total_lessons

def attendance_band(absence_pct: float) -> int:
    """
    Convert an absence percentage to the MEP 0-10 attendance band.

    Args:
        absence_pct: Absence percentage

    Returns:
        Band between 0 and 10
    """
    for upper_bound, band in MEP_BANDS:
        if absence_pct <= upper_bound:
            return band
    return 0

def scale_band(band: int, max_scale: float) -> float:
    """
    Rescale a 0-10 band to the grade scale of the course.

    Args:
        band: MEP band (0-10)
        max_scale: Maximum grade of the scale (e.g. 5 or 10)

    Returns:
        Attendance grade, not rounded
    """
    if max_scale is None or max_scale <= 0:
        raise InvalidScale(max_scale)

    return band * max_scale / 10
