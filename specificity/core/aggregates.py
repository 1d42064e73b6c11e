"""
Guarded aggregate helpers.

Rates and averages shown on dashboards must never come out as NaN or
infinity. Every helper here treats an empty input as an explicit case and
returns a neutral value instead of dividing by zero.
"""

from typing import Sequence, Union

Number = Union[int, float]


def safe_ratio(numerator: Number, denominator: Number, default: float = 0.0) -> float:
    """
    Divide, returning ``default`` when the denominator is zero.

    Args:
        numerator: Dividend
        denominator: Divisor
        default: Value returned for a zero denominator

    Returns:
        numerator / denominator, or default
    """
    if not denominator:
        return default
    return numerator / denominator


def approval_rate(approvals: int, total_votes: int) -> float:
    """Share of approving votes; 0 when nobody voted."""
    return safe_ratio(approvals, total_votes, default=0.0)


def average_load(assignment_counts: Sequence[Number]) -> float:
    """
    Mean number of assignments per expert.

    Zero experts or zero assignments yield 0.0.
    """
    if not assignment_counts:
        return 0.0
    return safe_ratio(sum(assignment_counts), len(assignment_counts))
