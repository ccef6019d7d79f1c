"""Custom exception classes and error handling."""

from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": code,
                    "message": message,
                    "details": details or {},
                },
            },
        )


class TestNotFoundError(AppException):
    """Test does not exist or has been deactivated. Aborts a whole batch."""

    __test__ = False

    def __init__(self, test_id: int):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="TEST_NOT_FOUND",
            message="Test not found",
            details={"test_id": test_id},
        )


class StudentNotFoundError(AppException):
    """Student does not exist or is inactive. Scoped to one marks entry."""

    def __init__(self, student_id: int):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="STUDENT_NOT_FOUND",
            message=f"Student with ID {student_id} not found",
            details={"student_id": student_id},
        )


class InvalidTestConfigurationError(AppException):
    """Test thresholds cannot be graded against (max marks must be positive)."""

    def __init__(self, max_marks: Decimal, test_id: int | None = None):
        details: dict[str, Any] = {"max_marks": str(max_marks)}
        if test_id is not None:
            details["test_id"] = test_id
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="INVALID_TEST_CONFIGURATION",
            message=f"Maximum marks must be greater than zero (got {max_marks})",
            details=details,
        )


class OutOfRangeMarksError(AppException):
    """Marks obtained fall outside [0, max_marks]."""

    def __init__(self, marks_obtained: Decimal, max_marks: Decimal):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="OUT_OF_RANGE_MARKS",
            message=f"Invalid marks {marks_obtained}: must be between 0 and {max_marks}",
            details={"marks_obtained": str(marks_obtained), "max_marks": str(max_marks)},
        )


class CannotDeleteGradedTestError(AppException):
    """Test already has active grade records."""

    def __init__(self, test_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="CANNOT_DELETE_GRADED_TEST",
            message="Cannot delete test that has submitted results",
            details={"test_id": test_id},
        )


class StorageUnavailableError(AppException):
    """Grade record storage could not be reached. Safe to retry."""

    def __init__(self, message: str = "Grade record storage is unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="STORAGE_UNAVAILABLE",
            message=message,
        )
