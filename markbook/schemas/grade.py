"""Grade record and marks submission schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field

from markbook.core.config import settings
from markbook.schemas.common import BaseSchema


# ==========================================
# Constants
# ==========================================

GRADES = ["A+", "A", "B+", "B", "C+", "C", "D", "F"]

GradeLetter = Literal["A+", "A", "B+", "B", "C+", "C", "D", "F"]
ResultStatus = Literal["passed", "failed"]


# ==========================================
# Computation
# ==========================================

class GradeOutcome(BaseSchema):
    """Derived grading fields for one marks value."""

    percentage: Decimal
    grade: GradeLetter
    is_passed: bool


# ==========================================
# Grade Records
# ==========================================

class GradeRecordWrite(BaseSchema):
    """Fully-formed record handed to the store.

    ``submitted_at`` and ``academic_year`` only take effect when the write
    creates the record.
    """

    test_id: int
    student_id: int
    marks_obtained: Decimal
    max_marks: Decimal
    passing_marks: Decimal
    percentage: Decimal
    grade: GradeLetter
    is_passed: bool
    status: ResultStatus
    remarks: str = ""
    graded_by: int | None = None
    graded_at: datetime
    submitted_at: datetime
    academic_year: str


class GradeRecordResponse(BaseSchema):
    """Grade record response schema."""

    id: int
    test_id: int
    student_id: int
    marks_obtained: Decimal
    max_marks: Decimal
    passing_marks: Decimal
    percentage: Decimal
    grade: str
    is_passed: bool
    status: str
    remarks: str
    graded_by: int | None
    graded_at: datetime
    submitted_at: datetime
    academic_year: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ==========================================
# Bulk Marks Submission
# ==========================================

class MarksEntry(BaseSchema):
    """Single student marks entry.

    Range checks happen per entry during processing so one bad value does not
    reject the whole batch.
    """

    student_id: int
    marks_obtained: Decimal
    remarks: str | None = Field(None, max_length=settings.REMARKS_MAX_LENGTH)


class MarksSubmission(BaseSchema):
    """Batch of marks for one test."""

    marks: list[MarksEntry] = Field(..., min_length=1, max_length=settings.MAX_BATCH_ENTRIES)


class ProcessedEntry(BaseSchema):
    """Successfully written entry."""

    student_id: int
    student_name: str
    marks_obtained: Decimal
    percentage: Decimal
    grade: str
    is_passed: bool
    status: Literal["created", "updated"]


class EntryError(BaseSchema):
    """Entry that was not written, with the reason."""

    student_id: int
    code: str
    message: str


class BatchResult(BaseSchema):
    """Outcome of a batch submission."""

    test_id: int
    processed: list[ProcessedEntry] = []
    errors: list[EntryError] = []

    @property
    def total_processed(self) -> int:
        return len(self.processed)

    @property
    def total_errors(self) -> int:
        return len(self.errors)


class HasResultsResponse(BaseSchema):
    test_id: int
    has_results: bool
