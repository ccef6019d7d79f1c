"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from markbook.api.v1.endpoints import analytics, marks, students

api_router = APIRouter()

# Marks submission and per-test results
api_router.include_router(
    marks.router,
    prefix="/tests",
    tags=["Tests"],
)

# Student performance
api_router.include_router(
    students.router,
    prefix="/students",
    tags=["Students"],
)

# Dashboards
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["Analytics"],
)
