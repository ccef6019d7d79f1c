"""Database models package."""

from markbook.models.grade_record import GradeRecord
from markbook.models.student import Student
from markbook.models.subject import Subject
from markbook.models.test import Test, TestType

__all__ = [
    # Reference data
    "Student",
    "Subject",
    "Test",
    "TestType",
    # Grading
    "GradeRecord",
]
