# Import all models to ensure they're registered with SQLAlchemy
from gradebook.models.students import Student
from gradebook.models.attendance import AttendanceRecord, ATTENDANCE_STATUSES
from gradebook.models.academics import Assignment, AssignmentGrade, GradeScaleConfig, LessonConfig, GradeSubject
from gradebook.models.indicators import DailyIndicator, DailyEvaluation, DailyIndicatorScore
