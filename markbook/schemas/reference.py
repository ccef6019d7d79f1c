"""Snapshots of the reference data the engine reads but never writes."""

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import Field

from markbook.schemas.common import BaseSchema


class ResolvedSubject(BaseSchema):
    """Test points at a managed subject."""

    kind: Literal["resolved"] = "resolved"
    subject_id: int


class UnresolvedSubject(BaseSchema):
    """Test carries only a free-text subject label."""

    kind: Literal["unresolved"] = "unresolved"
    label: str


SubjectRef = ResolvedSubject | UnresolvedSubject


class SubjectSnapshot(BaseSchema):
    id: int
    name: str
    code: str
    department: str | None = None


class TestSnapshot(BaseSchema):
    """Immutable view of a test for the duration of one batch."""

    id: int
    title: str
    subject: SubjectRef = Field(discriminator="kind")
    test_type: str
    test_date: date
    max_marks: Decimal
    passing_marks: Decimal
    is_active: bool = True


class StudentSnapshot(BaseSchema):
    id: int
    name: str
    roll_number: str | None = None
