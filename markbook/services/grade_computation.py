"""Grade computation rules.

This module is the only place grades are derived from marks. Every record
written by the engine goes through :func:`compute`.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from markbook.core.exceptions import InvalidTestConfigurationError, OutOfRangeMarksError
from markbook.schemas.grade import GradeOutcome

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

# Descending percentage bands, first match wins
GRADE_BANDS: list[tuple[Decimal, str]] = [
    (Decimal("90"), "A+"),
    (Decimal("80"), "A"),
    (Decimal("70"), "B+"),
    (Decimal("60"), "B"),
    (Decimal("50"), "C+"),
    (Decimal("40"), "C"),
    (Decimal("35"), "D"),
]
FAILING_GRADE = "F"


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 rather than its binary expansion
    return Decimal(str(value))


def round_to(value: Decimal, places: str = "0.01") -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def grade_for_percentage(percentage: Decimal) -> str:
    """Map a percentage onto its letter grade."""
    for threshold, grade in GRADE_BANDS:
        if percentage >= threshold:
            return grade
    return FAILING_GRADE


def status_for(is_passed: bool) -> str:
    return "passed" if is_passed else "failed"


def academic_year_for(moment: datetime) -> str:
    """Academic year label, e.g. ``2025-2026`` for any date in 2025."""
    return f"{moment.year}-{moment.year + 1}"


def compute(
    marks_obtained: Decimal | int | float | str,
    max_marks: Decimal | int | float | str,
    passing_marks: Decimal | int | float | str,
) -> GradeOutcome:
    """Derive percentage, grade and pass/fail from raw marks.

    Raises:
        InvalidTestConfigurationError: max_marks is not positive.
        OutOfRangeMarksError: marks_obtained is outside [0, max_marks].
    """
    marks = to_decimal(marks_obtained)
    maximum = to_decimal(max_marks)
    passing = to_decimal(passing_marks)

    if not maximum.is_finite() or maximum <= 0:
        raise InvalidTestConfigurationError(maximum)
    if not marks.is_finite() or marks < 0 or marks > maximum:
        raise OutOfRangeMarksError(marks, maximum)

    percentage = round_to(marks / maximum * HUNDRED)
    return GradeOutcome(
        percentage=percentage,
        grade=grade_for_percentage(percentage),
        is_passed=marks >= passing,
    )
