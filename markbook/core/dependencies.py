"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Header

from markbook.core.database import SessionFactory
from markbook.core.exceptions import StudentNotFoundError, TestNotFoundError
from markbook.schemas.reference import StudentSnapshot, TestSnapshot
from markbook.services.aggregation import AggregationService
from markbook.services.grade_store import GradeRecordStore
from markbook.services.providers import (
    SqlStudentProvider,
    SqlSubjectProvider,
    SqlTestProvider,
)
from markbook.services.submission import MarksSubmissionService


def get_grader_id(
    x_grader_id: int = Header(
        ...,
        alias="X-Grader-Id",
        description="Authenticated grader, set by the authentication gateway",
    ),
) -> int:
    """Grader identity injected by the caller; never derived here."""
    return x_grader_id


def get_grade_store(factory: SessionFactory) -> GradeRecordStore:
    return GradeRecordStore(factory)


def get_test_provider(factory: SessionFactory) -> SqlTestProvider:
    return SqlTestProvider(factory)


def get_student_provider(factory: SessionFactory) -> SqlStudentProvider:
    return SqlStudentProvider(factory)


def get_submission_service(
    store: Annotated[GradeRecordStore, Depends(get_grade_store)],
    tests: Annotated[SqlTestProvider, Depends(get_test_provider)],
    students: Annotated[SqlStudentProvider, Depends(get_student_provider)],
) -> MarksSubmissionService:
    return MarksSubmissionService(store, tests, students)


def get_aggregation_service(
    factory: SessionFactory,
    store: Annotated[GradeRecordStore, Depends(get_grade_store)],
    tests: Annotated[SqlTestProvider, Depends(get_test_provider)],
) -> AggregationService:
    return AggregationService(store, tests, SqlSubjectProvider(factory))


async def get_active_test(
    test_id: int,
    tests: Annotated[SqlTestProvider, Depends(get_test_provider)],
) -> TestSnapshot:
    """Resolve the path's test or fail with 404."""
    test = await tests.get_active(test_id)
    if not test:
        raise TestNotFoundError(test_id)
    return test


async def get_active_student(
    student_id: int,
    students: Annotated[SqlStudentProvider, Depends(get_student_provider)],
) -> StudentSnapshot:
    """Resolve the path's student or fail with 404."""
    student = await students.get_active(student_id)
    if not student:
        raise StudentNotFoundError(student_id)
    return student


# Type aliases for dependency injection
GraderId = Annotated[int, Depends(get_grader_id)]
GradeStore = Annotated[GradeRecordStore, Depends(get_grade_store)]
Submissions = Annotated[MarksSubmissionService, Depends(get_submission_service)]
Aggregations = Annotated[AggregationService, Depends(get_aggregation_service)]
ActiveTest = Annotated[TestSnapshot, Depends(get_active_test)]
ActiveStudent = Annotated[StudentSnapshot, Depends(get_active_student)]
