"""Test model."""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, Date, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from markbook.core.database import Base
from markbook.models.base import ActiveFlagMixin, IDMixin, TimestampMixin


class TestType(str, enum.Enum):
    """Kinds of scheduled tests."""

    MIDTERM = "midterm"
    FINAL = "final"
    SUPPLEMENTARY = "supplementary"
    PRACTICAL = "practical"


class Test(Base, IDMixin, TimestampMixin, ActiveFlagMixin):
    """Read model of a test, owned by test management.

    A test points at a Subject row through ``subject_id``; tests created
    before subjects were managed carry a free-text ``subject_label`` instead.
    """

    __tablename__ = "tests"

    title: Mapped[str] = mapped_column(String(150), nullable=False)
    subject_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    subject_label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    test_type: Mapped[TestType] = mapped_column(
        Enum(TestType, name="test_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TestType.MIDTERM,
    )
    test_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    max_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    passing_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)

    # Denormalized marks bookkeeping
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_marks_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Test(id={self.id}, title={self.title})>"
