"""Student performance endpoints."""

from fastapi import APIRouter

from markbook.core.dependencies import ActiveStudent, Aggregations
from markbook.schemas.analytics import (
    PeriodProgress,
    ResultsAnalysis,
    StudentSummary,
    SubjectPerformance,
)
from markbook.schemas.grade import GradeRecordResponse

router = APIRouter()


@router.get("/{student_id}/summary", response_model=StudentSummary)
async def get_student_summary(student: ActiveStudent, service: Aggregations):
    """Get overall performance totals for a student."""
    return await service.student_summary(student.id)


@router.get("/{student_id}/results", response_model=list[GradeRecordResponse])
async def get_student_results(student: ActiveStudent, service: Aggregations):
    """Get a student's results, newest first."""
    return await service.student_results(student.id)


@router.get("/{student_id}/subject-performance", response_model=list[SubjectPerformance])
async def get_subject_performance(student: ActiveStudent, service: Aggregations):
    """Get a student's performance grouped by subject."""
    return await service.subject_performance(student.id)


@router.get("/{student_id}/monthly-progress", response_model=list[PeriodProgress])
async def get_monthly_progress(student: ActiveStudent, service: Aggregations):
    """Get a student's month-by-month percentage, oldest month first."""
    return await service.monthly_progress(student.id)


@router.get("/{student_id}/analysis", response_model=ResultsAnalysis)
async def get_results_analysis(student: ActiveStudent, service: Aggregations):
    """Get trend analysis, strengths and recommendations for a student."""
    return await service.results_analysis(student.id)
