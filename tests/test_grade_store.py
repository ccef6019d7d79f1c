import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from markbook.core.exceptions import CannotDeleteGradedTestError, StorageUnavailableError
from markbook.models.grade_record import GradeRecord
from markbook.schemas.grade import GradeRecordWrite
from markbook.services.grade_computation import academic_year_for, compute, status_for
from markbook.services.grade_store import GradeRecordStore


def build_write(test, student, marks, moment, grader_id=1, remarks=""):
    outcome = compute(marks, test.max_marks, test.passing_marks)
    return GradeRecordWrite(
        test_id=test.id,
        student_id=student.id,
        marks_obtained=Decimal(str(marks)),
        max_marks=test.max_marks,
        passing_marks=test.passing_marks,
        percentage=outcome.percentage,
        grade=outcome.grade,
        is_passed=outcome.is_passed,
        status=status_for(outcome.is_passed),
        remarks=remarks,
        graded_by=grader_id,
        graded_at=moment,
        submitted_at=moment,
        academic_year=academic_year_for(moment),
    )


def naive_utc(moment: datetime) -> datetime:
    # SQLite returns stored UTC values without tzinfo
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


async def test_upsert_creates_then_updates(store, make_test, make_student):
    test = await make_test()
    student = await make_student()
    first_at = datetime(2025, 12, 30, 9, 0, tzinfo=timezone.utc)
    second_at = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    record, created = await store.upsert(build_write(test, student, 45, first_at))
    assert created is True
    assert record.grade == "C"

    record, created = await store.upsert(
        build_write(test, student, 92, second_at, grader_id=7, remarks="Re-marked")
    )
    assert created is False
    assert record.marks_obtained == Decimal("92")
    assert record.grade == "A+"
    assert record.graded_by == 7
    assert record.remarks == "Re-marked"
    assert naive_utc(record.graded_at) == naive_utc(second_at)

    # Submission time and academic year stay with the first write
    assert naive_utc(record.submitted_at) == naive_utc(first_at)
    assert record.academic_year == "2025-2026"


async def test_upsert_keeps_one_record_per_key(store, make_test, make_student):
    test = await make_test()
    student = await make_student()
    now = datetime.now(timezone.utc)

    for marks in (10, 20, 30):
        await store.upsert(build_write(test, student, marks, now))

    records = await store.find_by_test(test.id)
    assert len(records) == 1
    assert records[0].marks_obtained == Decimal("30")


async def test_concurrent_upserts_collapse_into_one_record(store, make_test, make_student):
    test = await make_test()
    student = await make_student()
    base = datetime(2026, 2, 1, tzinfo=timezone.utc)
    writes = [
        build_write(test, student, marks, base + timedelta(seconds=i))
        for i, marks in enumerate(range(50, 60))
    ]

    results = await asyncio.gather(*(store.upsert(w) for w in writes))

    assert sum(1 for _, created in results if created) == 1
    records = await store.find_by_test(test.id)
    assert len(records) == 1

    record = records[0]
    winner = next(w for w in writes if w.marks_obtained == record.marks_obtained)
    assert record.percentage == winner.percentage
    assert record.grade == winner.grade

    created_write = next(w for (r, c), w in zip(results, writes) if c)
    assert naive_utc(record.submitted_at) == naive_utc(created_write.submitted_at)


async def test_upsert_reactivates_soft_deleted_record(store, session_factory, make_test, make_student):
    test = await make_test()
    student = await make_student()
    now = datetime.now(timezone.utc)
    await store.upsert(build_write(test, student, 70, now))

    async with session_factory() as session, session.begin():
        await session.execute(update(GradeRecord).values(is_active=False))
    assert await store.find_by_test(test.id) == []

    record, created = await store.upsert(
        build_write(test, student, 75, now + timedelta(minutes=5))
    )

    assert created is False
    assert record.is_active is True
    assert len(await store.find_by_test(test.id)) == 1


async def test_get_returns_record_or_none(store, make_test, make_student):
    test = await make_test()
    student = await make_student()

    assert await store.get(test.id, student.id) is None

    await store.upsert(build_write(test, student, 60, datetime.now(timezone.utc)))

    record = await store.get(test.id, student.id)
    assert record is not None
    assert record.grade == "B"


async def test_find_by_test_orders_as_requested(store, make_test, make_student):
    test = await make_test()
    now = datetime.now(timezone.utc)
    for marks in (55, 90, 72):
        student = await make_student()
        await store.upsert(build_write(test, student, marks, now))

    records = await store.find_by_test(test.id, GradeRecord.marks_obtained.desc())

    assert [r.marks_obtained for r in records] == [Decimal("90"), Decimal("72"), Decimal("55")]


async def test_find_by_student_spans_tests(store, make_test, make_student):
    student = await make_student()
    other = await make_student()
    now = datetime.now(timezone.utc)
    for _ in range(3):
        test = await make_test()
        await store.upsert(build_write(test, student, 50, now))
    await store.upsert(build_write(test, other, 50, now))

    assert len(await store.find_by_student(student.id)) == 3
    assert len(await store.find_by_student(other.id)) == 1


async def test_has_active_records_and_deletion_veto(store, make_test, make_student):
    graded = await make_test()
    ungraded = await make_test()
    student = await make_student()
    await store.upsert(build_write(graded, student, 80, datetime.now(timezone.utc)))

    assert await store.has_active_records_for_test(graded.id) is True
    assert await store.has_active_records_for_test(ungraded.id) is False
    assert await store.count_active_for_test(graded.id) == 1

    await store.ensure_test_deletable(ungraded.id)
    with pytest.raises(CannotDeleteGradedTestError) as exc:
        await store.ensure_test_deletable(graded.id)
    assert exc.value.status_code == 409


async def test_grade_counts(store, make_test, make_student):
    test = await make_test()
    now = datetime.now(timezone.utc)
    for marks in (95, 91, 45, 10):
        student = await make_student()
        await store.upsert(build_write(test, student, marks, now))

    assert await store.grade_counts() == {"A+": 2, "C": 1, "F": 1}


async def test_regrade_all_fixes_stale_grades(store, session_factory, make_test, make_student):
    test = await make_test()
    student = await make_student()
    record, _ = await store.upsert(build_write(test, student, 37, datetime.now(timezone.utc)))
    assert record.grade == "D"

    # Simulate a record graded under an older band table
    async with session_factory() as session, session.begin():
        await session.execute(
            update(GradeRecord).where(GradeRecord.id == record.id).values(grade="F")
        )

    assert await store.regrade_all() == 1
    assert (await store.get(test.id, student.id)).grade == "D"
    assert await store.regrade_all() == 0


async def test_unreachable_storage_raises_storage_unavailable(tmp_path):
    from markbook.core.database import build_engine, build_session_factory

    # Parent directory does not exist, so the database cannot be opened
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'markbook.db'}")
    store = GradeRecordStore(build_session_factory(engine))
    try:
        with pytest.raises(StorageUnavailableError) as exc:
            await store.has_active_records_for_test(1)
        assert exc.value.code == "STORAGE_UNAVAILABLE"
    finally:
        await engine.dispose()


async def test_update_is_not_reported_as_created_when_clock_repeats(
    store, make_test, make_student, monkeypatch
):
    test = await make_test()
    student = await make_student()
    frozen = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    # Both writes get identical row timestamps
    monkeypatch.setattr("markbook.services.grade_store.utcnow", lambda: frozen)

    _, first_created = await store.upsert(build_write(test, student, 40, frozen))
    _, second_created = await store.upsert(
        build_write(test, student, 60, frozen + timedelta(seconds=1))
    )

    assert first_created is True
    assert second_created is False


def test_grade_history_is_not_cascade_deleted():
    for column in ("test_id", "student_id"):
        (foreign_key,) = GradeRecord.__table__.c[column].foreign_keys
        assert foreign_key.ondelete is None


async def test_broken_factory_maps_every_read(broken_session_factory):
    store = GradeRecordStore(broken_session_factory)

    with pytest.raises(StorageUnavailableError):
        await store.find_by_student(1)
    with pytest.raises(StorageUnavailableError):
        await store.grade_counts()
