"""Bulk marks submission."""

import logging

from markbook.core.exceptions import (
    AppException,
    InvalidTestConfigurationError,
    OutOfRangeMarksError,
    StorageUnavailableError,
    StudentNotFoundError,
    TestNotFoundError,
)
from markbook.models.base import utcnow
from markbook.schemas.grade import (
    BatchResult,
    EntryError,
    GradeRecordWrite,
    MarksEntry,
    ProcessedEntry,
)
from markbook.schemas.reference import TestSnapshot
from markbook.services.grade_computation import (
    academic_year_for,
    compute,
    round_to,
    status_for,
    to_decimal,
)
from markbook.services.grade_store import GradeRecordStore
from markbook.services.providers import StudentProvider, TestProvider

# Failures that only reject the offending entry
ENTRY_ERRORS = (StudentNotFoundError, OutOfRangeMarksError, StorageUnavailableError)


class MarksSubmissionService:
    """Applies batches of marks for one test with per-entry outcomes.

    A batch is not atomic: every entry is written in its own transaction and
    failing entries are reported alongside the ones that were saved.
    """

    def __init__(
        self,
        store: GradeRecordStore,
        tests: TestProvider,
        students: StudentProvider,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.tests = tests
        self.students = students
        self.logger = logger or logging.getLogger(__name__)

    async def submit(
        self,
        test_id: int,
        entries: list[MarksEntry],
        grader_id: int | None,
    ) -> BatchResult:
        """Grade and store a batch of marks entries for one test.

        Raises:
            TestNotFoundError: test is missing or inactive.
            InvalidTestConfigurationError: test max marks is not positive.
            StorageUnavailableError: the test could not be read.
        """
        test = await self.tests.get_active(test_id)
        if not test:
            raise TestNotFoundError(test_id)
        if test.max_marks <= 0:
            raise InvalidTestConfigurationError(test.max_marks, test_id)

        self.logger.info(
            f"[MARKS] Test {test_id}: processing {len(entries)} entries (grader={grader_id})"
        )

        result = BatchResult(test_id=test_id)
        for entry in entries:
            try:
                processed = await self._apply(test, entry, grader_id)
            except ENTRY_ERRORS as e:
                self.logger.warning(
                    f"[MARKS] Test {test_id}: entry for student {entry.student_id} rejected: {e.message}"
                )
                result.errors.append(self._entry_error(entry, e))
                continue
            result.processed.append(processed)

        self.logger.info(
            f"[MARKS] Test {test_id}: {result.total_processed} saved, {result.total_errors} errors"
        )

        if result.processed:
            await self._record_marks_update(test_id)

        return result

    async def _apply(
        self,
        test: TestSnapshot,
        entry: MarksEntry,
        grader_id: int | None,
    ) -> ProcessedEntry:
        student = await self.students.get_active(entry.student_id)
        if not student:
            raise StudentNotFoundError(entry.student_id)

        # Grade the value the DECIMAL(10,2) column will hold; out-of-range
        # marks go to compute unchanged and are rejected there
        marks = to_decimal(entry.marks_obtained)
        if marks.is_finite() and 0 <= marks <= test.max_marks:
            marks = round_to(marks)
        outcome = compute(marks, test.max_marks, test.passing_marks)

        now = utcnow()
        record, created = await self.store.upsert(
            GradeRecordWrite(
                test_id=test.id,
                student_id=student.id,
                marks_obtained=marks,
                max_marks=test.max_marks,
                passing_marks=test.passing_marks,
                percentage=outcome.percentage,
                grade=outcome.grade,
                is_passed=outcome.is_passed,
                status=status_for(outcome.is_passed),
                remarks=entry.remarks or "",
                graded_by=grader_id,
                graded_at=now,
                submitted_at=now,
                academic_year=academic_year_for(now),
            )
        )

        return ProcessedEntry(
            student_id=student.id,
            student_name=student.name,
            marks_obtained=record.marks_obtained,
            percentage=record.percentage,
            grade=record.grade,
            is_passed=record.is_passed,
            status="created" if created else "updated",
        )

    def _entry_error(self, entry: MarksEntry, error: AppException) -> EntryError:
        return EntryError(
            student_id=entry.student_id,
            code=error.code,
            message=error.message,
        )

    async def _record_marks_update(self, test_id: int) -> None:
        """Refresh the test's denormalized result count; never fails the batch."""
        try:
            count = await self.store.count_active_for_test(test_id)
            await self.tests.record_marks_update(test_id, count, utcnow())
        except Exception:
            self.logger.exception(f"[MARKS] Test {test_id}: failed to update result count")
