"""Reference data providers for tests, students and subjects.

The engine only reads this data. The protocols describe what it needs; the
SQL implementations read the tables owned by the management modules.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from markbook.core.database import storage_session
from markbook.models.student import Student
from markbook.models.subject import Subject
from markbook.models.test import Test
from markbook.schemas.reference import (
    ResolvedSubject,
    StudentSnapshot,
    SubjectRef,
    SubjectSnapshot,
    TestSnapshot,
    UnresolvedSubject,
)


class TestProvider(Protocol):
    async def get_active(self, test_id: int) -> TestSnapshot | None: ...

    async def get_many(self, test_ids: Iterable[int]) -> dict[int, TestSnapshot]: ...

    async def record_marks_update(
        self, test_id: int, result_count: int, updated_at: datetime
    ) -> None: ...


class StudentProvider(Protocol):
    async def get_active(self, student_id: int) -> StudentSnapshot | None: ...


class SubjectProvider(Protocol):
    async def resolve(self, ref: SubjectRef) -> SubjectSnapshot | None: ...

    async def resolve_many(self, subject_ids: Iterable[int]) -> dict[int, SubjectSnapshot]: ...


def subject_ref_for(test: Test) -> SubjectRef:
    """Build the subject reference of a test row."""
    if test.subject_id is not None:
        return ResolvedSubject(subject_id=test.subject_id)
    return UnresolvedSubject(label=test.subject_label or "")


def snapshot_of(test: Test) -> TestSnapshot:
    return TestSnapshot(
        id=test.id,
        title=test.title,
        subject=subject_ref_for(test),
        test_type=test.test_type.value,
        test_date=test.test_date,
        max_marks=test.max_marks,
        passing_marks=test.passing_marks,
        is_active=test.is_active,
    )


class SqlTestProvider:
    """Tests read from the ``tests`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_active(self, test_id: int) -> TestSnapshot | None:
        async with storage_session(self.session_factory) as session:
            result = await session.execute(
                select(Test).where(Test.id == test_id, Test.is_active.is_(True))
            )
            test = result.scalar_one_or_none()
        return snapshot_of(test) if test else None

    async def get_many(self, test_ids: Iterable[int]) -> dict[int, TestSnapshot]:
        """Tests by id, including soft-deleted ones; missing ids are omitted."""
        ids = set(test_ids)
        if not ids:
            return {}
        async with storage_session(self.session_factory) as session:
            result = await session.execute(select(Test).where(Test.id.in_(ids)))
            tests = result.scalars().all()
        return {t.id: snapshot_of(t) for t in tests}

    async def record_marks_update(
        self, test_id: int, result_count: int, updated_at: datetime
    ) -> None:
        async with storage_session(self.session_factory, write=True) as session:
            await session.execute(
                update(Test)
                .where(Test.id == test_id)
                .values(result_count=result_count, last_marks_update=updated_at)
            )


class SqlStudentProvider:
    """Students read from the ``students`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_active(self, student_id: int) -> StudentSnapshot | None:
        async with storage_session(self.session_factory) as session:
            result = await session.execute(
                select(Student).where(
                    Student.id == student_id,
                    Student.is_active.is_(True),
                )
            )
            student = result.scalar_one_or_none()
        return StudentSnapshot.model_validate(student) if student else None


class SqlSubjectProvider:
    """Subjects read from the ``subjects`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def resolve(self, ref: SubjectRef) -> SubjectSnapshot | None:
        """Resolve a subject reference; free-text labels never resolve."""
        if isinstance(ref, UnresolvedSubject):
            return None
        subjects = await self.resolve_many([ref.subject_id])
        return subjects.get(ref.subject_id)

    async def resolve_many(self, subject_ids: Iterable[int]) -> dict[int, SubjectSnapshot]:
        ids = set(subject_ids)
        if not ids:
            return {}
        async with storage_session(self.session_factory) as session:
            result = await session.execute(select(Subject).where(Subject.id.in_(ids)))
            subjects = result.scalars().all()
        return {s.id: SubjectSnapshot.model_validate(s) for s in subjects}
