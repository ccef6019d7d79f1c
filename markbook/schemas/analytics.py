"""Aggregation result schemas."""

from decimal import Decimal

from markbook.schemas.common import BaseSchema
from markbook.schemas.grade import GradeRecordResponse


class ClassStatistics(BaseSchema):
    """Class-level statistics for one test."""

    test_id: int
    total_students: int = 0
    average_marks: Decimal = Decimal("0")
    average_percentage: Decimal = Decimal("0")
    pass_rate: Decimal = Decimal("0")
    highest_marks: Decimal = Decimal("0")
    lowest_marks: Decimal = Decimal("0")
    grade_distribution: dict[str, int] = {}


class StudentSummary(BaseSchema):
    """Overall performance of one student across all graded tests."""

    student_id: int
    total_tests: int = 0
    passed_tests: int = 0
    total_marks: Decimal = Decimal("0")
    total_max_marks: Decimal = Decimal("0")
    average_score: Decimal = Decimal("0")
    overall_percentage: Decimal = Decimal("0")
    pass_rate: Decimal = Decimal("0")
    grade_distribution: dict[str, int] = {}


class SubjectPerformance(BaseSchema):
    """Performance of one student in one subject."""

    subject_key: str
    subject_id: int | None = None
    subject_name: str
    subject_code: str | None = None
    labels: list[str] = []
    total_marks: Decimal
    total_max_marks: Decimal
    total_tests: int
    passed_tests: int
    percentage: Decimal
    pass_rate: Decimal


class PeriodProgress(BaseSchema):
    """Performance of one student in one calendar month."""

    period: str
    percentage: Decimal
    tests_count: int


class ResultsAnalysis(BaseSchema):
    """Trend analysis and study recommendations for one student."""

    student_id: int
    total_tests: int = 0
    average_score: Decimal = Decimal("0")
    improvement: Decimal = Decimal("0")
    grade_distribution: dict[str, int] = {}
    monthly_progress: list[PeriodProgress] = []
    subject_performance: list[SubjectPerformance] = []
    strengths: list[str] = []
    needs_improvement: list[str] = []
    recommendations: list[str] = []


class TestResults(BaseSchema):
    """Records of one test, highest marks first."""

    test_id: int
    results: list[GradeRecordResponse]
    total: int
