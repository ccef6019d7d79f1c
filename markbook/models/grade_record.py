"""Grade record model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from markbook.core.database import Base
from markbook.models.base import ActiveFlagMixin, IDMixin, TimestampMixin


class GradeRecord(Base, IDMixin, TimestampMixin, ActiveFlagMixin):
    """Outcome of grading one student on one test.

    ``max_marks`` and ``passing_marks`` are copied from the test at write time
    so later threshold edits do not regrade history. ``submitted_at`` and
    ``academic_year`` are written on insert only.
    """

    __tablename__ = "grade_records"

    test_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("tests.id"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id"),
        nullable=False,
        index=True,
    )
    marks_obtained: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    max_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    passing_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), nullable=False)
    grade: Mapped[str] = mapped_column(String(2), nullable=False)
    is_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, nullable=False, default="")
    graded_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    graded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False)

    __table_args__ = (
        UniqueConstraint("test_id", "student_id", name="uq_grade_record_test_student"),
        CheckConstraint("marks_obtained >= 0", name="ck_grade_record_marks_non_negative"),
        CheckConstraint("max_marks > 0", name="ck_grade_record_max_marks_positive"),
        Index("ix_grade_records_test_marks", "test_id", "marks_obtained"),
        Index("ix_grade_records_student_submitted", "student_id", "submitted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<GradeRecord(test_id={self.test_id}, student_id={self.student_id}, "
            f"grade={self.grade})>"
        )
