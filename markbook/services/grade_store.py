"""Grade record storage.

The store is the single writer of grade records. Every write is an
``INSERT ... ON CONFLICT (test_id, student_id) DO UPDATE`` executed in its own
transaction, so concurrent writes to one key collapse into one row inside the
database and a batch interrupted midway leaves only complete rows behind.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import exists, func, literal_column, null, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from markbook.core.database import storage_session
from markbook.core.exceptions import (
    CannotDeleteGradedTestError,
    InvalidTestConfigurationError,
    OutOfRangeMarksError,
)
from markbook.models.base import utcnow
from markbook.models.grade_record import GradeRecord
from markbook.schemas.grade import GradeRecordWrite
from markbook.services.grade_computation import compute, status_for

logger = logging.getLogger(__name__)

# Columns a re-submission overwrites. submitted_at, academic_year and
# created_at are written on insert only.
UPDATABLE_COLUMNS = (
    "marks_obtained",
    "max_marks",
    "passing_marks",
    "percentage",
    "grade",
    "is_passed",
    "status",
    "remarks",
    "graded_by",
    "graded_at",
    "is_active",
    "updated_at",
)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# xmax is 0 only on a row version written by INSERT
_INSERTED_MARKER = {
    "postgresql": lambda: literal_column("xmax = 0"),
    "sqlite": null,
}


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class GradeRecordStore:
    """Keyed store of grade records over (test_id, student_id)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, write: bool = False) -> AsyncIterator[AsyncSession]:
        async with storage_session(self.session_factory, write=write) as session:
            yield session

    def _upsert_statement(self, session: AsyncSession, values: dict):
        dialect = session.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Upsert is not supported on {dialect}")

        stmt = insert(GradeRecord).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["test_id", "student_id"],
            set_={column: stmt.excluded[column] for column in UPDATABLE_COLUMNS},
        ).returning(GradeRecord, _INSERTED_MARKER[dialect]().label("inserted"))

    async def upsert(self, write: GradeRecordWrite) -> tuple[GradeRecord, bool]:
        """Create or replace the record for the write's key.

        Returns the stored record and whether this call created it.
        """
        now = utcnow()
        values = write.model_dump()
        values.update(is_active=True, created_at=now, updated_at=now)

        async with self._session(write=True) as session:
            result = await session.execute(self._upsert_statement(session, values))
            record, inserted = result.one()

        if inserted is None:
            # No insert marker on SQLite; submitted_at only takes our value on insert
            inserted = _as_utc(record.submitted_at) == _as_utc(write.submitted_at)
        return record, bool(inserted)

    async def get(self, test_id: int, student_id: int) -> GradeRecord | None:
        """Get the record for one key, active or not."""
        async with self._session() as session:
            result = await session.execute(
                select(GradeRecord).where(
                    GradeRecord.test_id == test_id,
                    GradeRecord.student_id == student_id,
                )
            )
            return result.scalar_one_or_none()

    async def _find(
        self,
        criteria: Sequence[ColumnElement[bool]],
        order_by: Sequence[ColumnElement] = (),
    ) -> list[GradeRecord]:
        query = select(GradeRecord).where(GradeRecord.is_active.is_(True), *criteria)
        query = query.order_by(*order_by, GradeRecord.id)
        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_by_test(
        self, test_id: int, *order_by: ColumnElement
    ) -> list[GradeRecord]:
        """Active records of one test in the caller's order."""
        return await self._find([GradeRecord.test_id == test_id], order_by)

    async def find_by_student(
        self, student_id: int, *order_by: ColumnElement
    ) -> list[GradeRecord]:
        """Active records of one student in the caller's order."""
        return await self._find([GradeRecord.student_id == student_id], order_by)

    async def grade_counts(self) -> dict[str, int]:
        """Number of active records per grade across all tests."""
        async with self._session() as session:
            result = await session.execute(
                select(GradeRecord.grade, func.count())
                .where(GradeRecord.is_active.is_(True))
                .group_by(GradeRecord.grade)
            )
            return {grade: count for grade, count in result.all()}

    async def count_active_for_test(self, test_id: int) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count()).where(
                    GradeRecord.test_id == test_id,
                    GradeRecord.is_active.is_(True),
                )
            )
            return result.scalar() or 0

    async def has_active_records_for_test(self, test_id: int) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(
                    exists().where(
                        GradeRecord.test_id == test_id,
                        GradeRecord.is_active.is_(True),
                    )
                )
            )
            return bool(result.scalar())

    async def ensure_test_deletable(self, test_id: int) -> None:
        """Veto deletion of a test that already has grade records."""
        if await self.has_active_records_for_test(test_id):
            raise CannotDeleteGradedTestError(test_id)

    async def regrade_all(self) -> int:
        """Recompute derived fields of every record from its stored marks.

        Returns the number of records whose percentage, grade or pass status
        changed. Records whose stored marks cannot be graded are left as-is.
        """
        changed = 0
        async with self._session(write=True) as session:
            result = await session.execute(select(GradeRecord).order_by(GradeRecord.id))
            for record in result.scalars():
                try:
                    outcome = compute(record.marks_obtained, record.max_marks, record.passing_marks)
                except (OutOfRangeMarksError, InvalidTestConfigurationError) as e:
                    logger.warning(f"Cannot regrade record {record.id}: {e.message}")
                    continue

                current = (record.percentage, record.grade, record.is_passed)
                if current == (outcome.percentage, outcome.grade, outcome.is_passed):
                    continue

                record.percentage = outcome.percentage
                record.grade = outcome.grade
                record.is_passed = outcome.is_passed
                record.status = status_for(outcome.is_passed)
                changed += 1

            await session.flush()
        return changed
