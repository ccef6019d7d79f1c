"""Marks submission and per-test result endpoints."""

from fastapi import APIRouter

from markbook.core.dependencies import ActiveTest, Aggregations, GradeStore, GraderId, Submissions
from markbook.schemas.analytics import ClassStatistics, TestResults
from markbook.schemas.common import ErrorResponse
from markbook.schemas.grade import BatchResult, HasResultsResponse, MarksSubmission

router = APIRouter()


@router.post(
    "/{test_id}/marks",
    response_model=BatchResult,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_marks(
    test_id: int,
    request: MarksSubmission,
    grader_id: GraderId,
    service: Submissions,
):
    """
    Submit marks for a batch of students.
    Each entry is graded and stored independently; rejected entries are
    listed in `errors` while the rest are saved.
    """
    return await service.submit(test_id, request.marks, grader_id)


@router.get("/{test_id}/results", response_model=TestResults)
async def get_test_results(test: ActiveTest, service: Aggregations):
    """Get all results of a test, highest marks first."""
    return await service.test_results(test.id)


@router.get("/{test_id}/statistics", response_model=ClassStatistics)
async def get_test_statistics(test: ActiveTest, service: Aggregations):
    """
    Get class statistics for a test (averages, pass rate, extremes and
    grade distribution).
    """
    return await service.class_stats(test.id)


@router.get("/{test_id}/has-results", response_model=HasResultsResponse)
async def has_results(test_id: int, store: GradeStore):
    """Check whether a test has active results and therefore cannot be deleted."""
    return HasResultsResponse(
        test_id=test_id,
        has_results=await store.has_active_records_for_test(test_id),
    )
