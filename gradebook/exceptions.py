from typing import List, Optional


class GradebookError(Exception):
    """Base class for errors raised by the gradebook services."""


class NotInitialized(GradebookError):
    """The database was used before `Database.initialize()` completed."""

    def __init__(self, message: str = "Database is not initialized"):
        super().__init__(message)


class InvalidScale(GradebookError, ValueError):
    def __init__(self, max_scale):
        self.max_scale = max_scale
        super().__init__(f"Grade scale must be a positive number, got {max_scale!r}")


class InvalidTotalLessons(GradebookError, ValueError):
    def __init__(self, total_lessons):
        self.total_lessons = total_lessons
        super().__init__(f"Total lessons must be greater than zero, got {total_lessons!r}")


class DataIntegrityError(GradebookError):
    """Stored data violates a domain rule, e.g. an unknown attendance status."""


class NotFound(GradebookError):
    pass


class StorageError(GradebookError):
    """
    A read or write against the backing store failed.

    The original driver/ORM exception is kept as ``__cause__``.
    """


class BatchPartialFailure(GradebookError):
    """
    One or more rows of a batch write failed and the whole batch was rolled back.

    Attributes:
        error_count: Number of rows that failed
        errors: Bounded sample of failure messages
        attempted: Number of rows in the batch
    """

    def __init__(self, error_count: int, errors: List[str], attempted: Optional[int] = None):
        self.error_count = error_count
        self.errors = errors
        self.attempted = attempted
        message = f"{error_count} errors while saving batch"
        if errors:
            message += f": {', '.join(errors)}"
            if error_count > len(errors):
                message += "..."
        super().__init__(message)
