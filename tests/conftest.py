import os

# Must be set before markbook.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import date, datetime, timezone
from decimal import Decimal

import httpx
import pytest

from markbook.core.database import Base, build_engine, build_session_factory, get_session_factory
from markbook.models import Student, Subject, Test, TestType
from markbook.schemas.grade import GradeRecordWrite
from markbook.services.aggregation import AggregationService
from markbook.services.grade_computation import academic_year_for, compute, status_for
from markbook.services.grade_store import GradeRecordStore
from markbook.services.providers import SqlStudentProvider, SqlSubjectProvider, SqlTestProvider
from markbook.services.submission import MarksSubmissionService


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions use separate connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'markbook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def broken_session_factory(tmp_path):
    """Session factory whose database cannot be opened (parent dir is missing)."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'markbook.db'}")
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# SERVICES
# ============================================================================

@pytest.fixture
def store(session_factory):
    return GradeRecordStore(session_factory)


@pytest.fixture
def test_provider(session_factory):
    return SqlTestProvider(session_factory)


@pytest.fixture
def student_provider(session_factory):
    return SqlStudentProvider(session_factory)


@pytest.fixture
def subject_provider(session_factory):
    return SqlSubjectProvider(session_factory)


@pytest.fixture
def submissions(store, test_provider, student_provider):
    return MarksSubmissionService(store, test_provider, student_provider)


@pytest.fixture
def aggregations(store, test_provider, subject_provider):
    return AggregationService(store, test_provider, subject_provider)


# ============================================================================
# ENTITY FACTORIES
# ============================================================================

@pytest.fixture
def make_subject(session_factory):
    async def factory(name="Mathematics", code="MATH101", **kwargs):
        async with session_factory() as session:
            subject = Subject(name=name, code=code, **kwargs)
            session.add(subject)
            await session.commit()
            return subject

    return factory


@pytest.fixture
def make_student(session_factory):
    counter = {"n": 0}

    async def factory(name=None, is_active=True, **kwargs):
        counter["n"] += 1
        async with session_factory() as session:
            student = Student(
                name=name or f"Student {counter['n']}",
                roll_number=f"R{counter['n']:03d}",
                is_active=is_active,
                **kwargs,
            )
            session.add(student)
            await session.commit()
            return student

    return factory


@pytest.fixture
def make_test(session_factory):
    async def factory(
        subject=None,
        subject_label=None,
        max_marks=100,
        passing_marks=40,
        is_active=True,
        title="Unit Test",
    ):
        async with session_factory() as session:
            test = Test(
                title=title,
                subject_id=subject.id if subject else None,
                subject_label=subject_label,
                test_type=TestType.MIDTERM,
                test_date=date(2025, 3, 10),
                max_marks=Decimal(str(max_marks)),
                passing_marks=Decimal(str(passing_marks)),
                is_active=is_active,
            )
            session.add(test)
            await session.commit()
            return test

    return factory


@pytest.fixture
def record_grade(store):
    """Store a graded record directly, with control over the submission time."""

    async def factory(test, student, marks, submitted_at=None, grader_id=1):
        outcome = compute(marks, test.max_marks, test.passing_marks)
        moment = submitted_at or datetime.now(timezone.utc)
        record, _ = await store.upsert(
            GradeRecordWrite(
                test_id=test.id,
                student_id=student.id,
                marks_obtained=Decimal(str(marks)),
                max_marks=test.max_marks,
                passing_marks=test.passing_marks,
                percentage=outcome.percentage,
                grade=outcome.grade,
                is_passed=outcome.is_passed,
                status=status_for(outcome.is_passed),
                graded_by=grader_id,
                graded_at=moment,
                submitted_at=moment,
                academic_year=academic_year_for(moment),
            )
        )
        return record

    return factory


# ============================================================================
# HTTP CLIENT
# ============================================================================

@pytest.fixture
async def client(session_factory):
    from markbook.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def broken_client(broken_session_factory):
    from markbook.main import app

    app.dependency_overrides[get_session_factory] = lambda: broken_session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
