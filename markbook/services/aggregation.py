"""Read-side statistics over grade records."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from markbook.models.grade_record import GradeRecord
from markbook.schemas.analytics import (
    ClassStatistics,
    PeriodProgress,
    ResultsAnalysis,
    StudentSummary,
    SubjectPerformance,
    TestResults,
)
from markbook.schemas.grade import GRADES, GradeRecordResponse
from markbook.schemas.reference import ResolvedSubject, UnresolvedSubject
from markbook.services.grade_computation import HUNDRED, round_to
from markbook.services.grade_store import GradeRecordStore
from markbook.services.providers import SubjectProvider, TestProvider

logger = logging.getLogger(__name__)

UNRESOLVED_SUBJECT_KEY = "unresolved"
UNRESOLVED_SUBJECT_NAME = "Uncategorized"

STRENGTH_THRESHOLD = Decimal("80")
WEAKNESS_THRESHOLD = Decimal("60")
TREND_WINDOW = 3


def empty_distribution() -> dict[str, int]:
    return {grade: 0 for grade in GRADES}


def grade_distribution(records: Iterable[GradeRecord]) -> dict[str, int]:
    distribution = empty_distribution()
    for record in records:
        distribution[record.grade] = distribution.get(record.grade, 0) + 1
    return distribution


def ratio(part: Decimal, whole: Decimal, places: str = "0.01") -> Decimal:
    """Percentage of part in whole, 0 when whole is 0."""
    if not whole:
        return round_to(Decimal("0"), places)
    return round_to(Decimal(part) / Decimal(whole) * HUNDRED, places)


def mean(values: list[Decimal]) -> Decimal:
    if not values:
        return Decimal("0")
    return sum(values, Decimal("0")) / len(values)


class _Bucket:
    """Running totals for one group of records."""

    def __init__(self):
        self.total_marks = Decimal("0")
        self.total_max_marks = Decimal("0")
        self.total_tests = 0
        self.passed_tests = 0

    def add(self, record: GradeRecord) -> None:
        self.total_marks += record.marks_obtained
        self.total_max_marks += record.max_marks
        self.total_tests += 1
        if record.is_passed:
            self.passed_tests += 1


class AggregationService:
    """Class statistics and student performance rollups.

    Every method is read-only; identical store contents give identical output.
    """

    def __init__(
        self,
        store: GradeRecordStore,
        tests: TestProvider,
        subjects: SubjectProvider,
    ):
        self.store = store
        self.tests = tests
        self.subjects = subjects

    # ==========================================
    # Per-test
    # ==========================================

    async def class_stats(self, test_id: int) -> ClassStatistics:
        """Summary statistics over all active records of one test."""
        records = await self.store.find_by_test(test_id)
        if not records:
            return ClassStatistics(test_id=test_id, grade_distribution=empty_distribution())

        count = len(records)
        marks = [r.marks_obtained for r in records]
        passed = sum(1 for r in records if r.is_passed)

        return ClassStatistics(
            test_id=test_id,
            total_students=count,
            average_marks=round_to(mean(marks)),
            average_percentage=round_to(mean([r.percentage for r in records])),
            pass_rate=ratio(Decimal(passed), Decimal(count)),
            highest_marks=max(marks),
            lowest_marks=min(marks),
            grade_distribution=grade_distribution(records),
        )

    async def test_results(self, test_id: int) -> TestResults:
        """Active records of one test, highest marks first."""
        records = await self.store.find_by_test(
            test_id,
            GradeRecord.marks_obtained.desc(),
            GradeRecord.student_id,
        )
        return TestResults(
            test_id=test_id,
            results=[GradeRecordResponse.model_validate(r) for r in records],
            total=len(records),
        )

    # ==========================================
    # Per-student
    # ==========================================

    async def student_summary(self, student_id: int) -> StudentSummary:
        records = await self.store.find_by_student(student_id)
        if not records:
            return StudentSummary(student_id=student_id, grade_distribution=empty_distribution())

        totals = _Bucket()
        for record in records:
            totals.add(record)

        return StudentSummary(
            student_id=student_id,
            total_tests=totals.total_tests,
            passed_tests=totals.passed_tests,
            total_marks=totals.total_marks,
            total_max_marks=totals.total_max_marks,
            average_score=round_to(mean([r.percentage for r in records])),
            overall_percentage=ratio(totals.total_marks, totals.total_max_marks),
            pass_rate=ratio(Decimal(totals.passed_tests), Decimal(totals.total_tests)),
            grade_distribution=grade_distribution(records),
        )

    async def student_results(self, student_id: int) -> list[GradeRecordResponse]:
        """Active records of one student, newest first."""
        records = await self.store.find_by_student(
            student_id,
            GradeRecord.created_at.desc(),
        )
        return [GradeRecordResponse.model_validate(r) for r in records]

    async def subject_performance(self, student_id: int) -> list[SubjectPerformance]:
        records = await self.store.find_by_student(student_id)
        return await self._subject_rollup(records)

    async def monthly_progress(self, student_id: int) -> list[PeriodProgress]:
        records = await self.store.find_by_student(student_id)
        return self._monthly_rollup(records)

    async def results_analysis(self, student_id: int) -> ResultsAnalysis:
        """Trend, strengths and recommendations for one student."""
        records = await self.store.find_by_student(
            student_id,
            GradeRecord.submitted_at.desc(),
        )
        if not records:
            return ResultsAnalysis(student_id=student_id, grade_distribution=empty_distribution())

        recent = [r.percentage for r in records[:TREND_WINDOW]]
        earliest = [r.percentage for r in records[-TREND_WINDOW:]]
        improvement = round_to(mean(recent) - mean(earliest))

        subjects = await self._subject_rollup(records)
        strengths = [s.subject_name for s in subjects if s.percentage >= STRENGTH_THRESHOLD]
        weaknesses = [s.subject_name for s in subjects if s.percentage < WEAKNESS_THRESHOLD]

        recommendations = []
        if improvement > 0:
            recommendations.append("Keep up the good work! Your performance is improving.")
        if improvement < -5:
            recommendations.append(
                "Consider reviewing your study methods and seek help from teachers."
            )
        if strengths:
            recommendations.append(f"You excel in: {', '.join(strengths)}")
        if weaknesses:
            recommendations.append(f"Focus more on: {', '.join(weaknesses)}")

        return ResultsAnalysis(
            student_id=student_id,
            total_tests=len(records),
            average_score=round_to(mean([r.percentage for r in records])),
            improvement=improvement,
            grade_distribution=grade_distribution(records),
            monthly_progress=self._monthly_rollup(records),
            subject_performance=subjects,
            strengths=strengths,
            needs_improvement=weaknesses,
            recommendations=recommendations,
        )

    # ==========================================
    # Global
    # ==========================================

    async def grade_distribution(self) -> dict[str, int]:
        """Grade counts over every active record."""
        distribution = empty_distribution()
        distribution.update(await self.store.grade_counts())
        return distribution

    # ==========================================
    # Rollups
    # ==========================================

    async def _subject_rollup(self, records: list[GradeRecord]) -> list[SubjectPerformance]:
        """Group records by the subject of their test.

        Records whose test no longer exists are skipped. Free-text subjects and
        subject ids that do not resolve share one sentinel bucket.
        """
        tests = await self.tests.get_many({r.test_id for r in records})
        subject_ids = {
            t.subject.subject_id for t in tests.values() if isinstance(t.subject, ResolvedSubject)
        }
        subjects = await self.subjects.resolve_many(subject_ids)

        buckets: dict[str, _Bucket] = defaultdict(_Bucket)
        unresolved_labels: set[str] = set()

        for record in records:
            test = tests.get(record.test_id)
            if test is None:
                logger.debug(f"Skipping grade record {record.id}: test {record.test_id} is gone")
                continue

            ref = test.subject
            if isinstance(ref, ResolvedSubject) and ref.subject_id in subjects:
                key = f"subject:{ref.subject_id}"
            else:
                key = UNRESOLVED_SUBJECT_KEY
                if isinstance(ref, UnresolvedSubject) and ref.label:
                    unresolved_labels.add(ref.label)
            buckets[key].add(record)

        performances = []
        for key, bucket in buckets.items():
            if key == UNRESOLVED_SUBJECT_KEY:
                subject_id, name, code = None, UNRESOLVED_SUBJECT_NAME, None
                labels = sorted(unresolved_labels)
            else:
                subject = subjects[int(key.split(":", 1)[1])]
                subject_id, name, code = subject.id, subject.name, subject.code
                labels = []

            performances.append(
                SubjectPerformance(
                    subject_key=key,
                    subject_id=subject_id,
                    subject_name=name,
                    subject_code=code,
                    labels=labels,
                    total_marks=bucket.total_marks,
                    total_max_marks=bucket.total_max_marks,
                    total_tests=bucket.total_tests,
                    passed_tests=bucket.passed_tests,
                    percentage=ratio(bucket.total_marks, bucket.total_max_marks, "0.1"),
                    pass_rate=ratio(
                        Decimal(bucket.passed_tests), Decimal(bucket.total_tests), "0.1"
                    ),
                )
            )

        # Named subjects alphabetically, sentinel bucket last
        performances.sort(
            key=lambda p: (p.subject_id is None, p.subject_name, p.subject_id or 0)
        )
        return performances

    def _monthly_rollup(self, records: list[GradeRecord]) -> list[PeriodProgress]:
        buckets: dict[str, _Bucket] = defaultdict(_Bucket)
        for record in records:
            buckets[record.submitted_at.strftime("%Y-%m")].add(record)

        return [
            PeriodProgress(
                period=period,
                percentage=ratio(bucket.total_marks, bucket.total_max_marks, "0.1"),
                tests_count=bucket.total_tests,
            )
            for period, bucket in sorted(buckets.items())
        ]
