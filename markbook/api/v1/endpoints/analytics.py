"""Cross-test analytics endpoints."""

from fastapi import APIRouter

from markbook.core.dependencies import Aggregations

router = APIRouter()


@router.get("/grade-distribution", response_model=dict[str, int])
async def get_grade_distribution(service: Aggregations):
    """Get the number of active results per grade across all tests."""
    return await service.grade_distribution()
