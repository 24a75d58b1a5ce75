# src/services/grading/calculator.py
"""Weighted final grade and letter grade. Pure functions, no I/O."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from src.exceptions import ValidationError

MIN_SCORE = 0.0
MAX_SCORE = 10.0
PASSING_GRADE = 5.0

# Inclusive lower bounds, evaluated high to low
LETTER_GRADE_BREAKPOINTS: List[Tuple[float, str]] = [
    (9.0, "A+"),
    (8.5, "A"),
    (8.0, "B+"),
    (7.0, "B"),
    (6.5, "C+"),
    (5.5, "C"),
    (5.0, "D+"),
    (4.0, "D"),
]
FAILING_LETTER = "F"

# Lowest to highest, used for ordering comparisons
LETTER_GRADE_ORDER: List[str] = [FAILING_LETTER] + [
    letter for _, letter in reversed(LETTER_GRADE_BREAKPOINTS)
]


@dataclass(frozen=True)
class GradeResult:
    final_grade: Optional[float]
    letter_grade: Optional[str]


def validate_score(score: float) -> float:
    if score is None or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(
            f"Score must be between {MIN_SCORE:g} and {MAX_SCORE:g}",
            details={"score": score},
        )
    return float(score)


def validate_weight(weight: float) -> float:
    if weight is None or not 0.0 <= weight <= 1.0:
        raise ValidationError(
            "Weight must be between 0 and 1", details={"weight": weight}
        )
    return float(weight)


def letter_grade_for(final_grade: float) -> str:
    for lower_bound, letter in LETTER_GRADE_BREAKPOINTS:
        if final_grade >= lower_bound:
            return letter
    return FAILING_LETTER


def is_passing(final_grade: Optional[float]) -> bool:
    return final_grade is not None and final_grade >= PASSING_GRADE


def weighted_mean(components: Iterable) -> Optional[float]:
    """
    Σ(score·weight) / Σweight over every component. Zero total weight
    yields 0; no components at all yields None.
    """
    total_score = 0.0
    total_weight = 0.0
    seen = False
    for component in components:
        seen = True
        score = validate_score(component.score)
        weight = validate_weight(component.weight)
        total_score += score * weight
        total_weight += weight

    if not seen:
        return None
    return total_score / total_weight if total_weight > 0 else 0.0


def recompute(components: Iterable) -> GradeResult:
    """
    Compute the final grade for a set of components.

    Args:
        components: objects exposing ``score`` and ``weight``

    Returns:
        GradeResult with the grade rounded to 2 decimals and its letter
    """
    final_grade = weighted_mean(components)
    if final_grade is None:
        return GradeResult(final_grade=None, letter_grade=None)

    final_grade = round(final_grade, 2)
    return GradeResult(
        final_grade=final_grade,
        letter_grade=letter_grade_for(final_grade),
    )


def all_graded(components: Iterable) -> bool:
    """Every component has a score above zero (and there is at least one)."""
    components = list(components)
    return bool(components) and all(c.score > 0 for c in components)
