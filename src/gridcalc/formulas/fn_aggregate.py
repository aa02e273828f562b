"""Aggregate formula functions: SUM, AVG/AVERAGE, MIN, MAX, COUNT.

Each function receives the already-flattened list of numeric arguments.
Values that could not be coerced to numbers were dropped beforehand.
"""

from __future__ import annotations

from typing import Callable


def _fn_sum(values: list[float]) -> float:
    return sum(values, 0.0)


def _fn_average(values: list[float]) -> float:
    """Arithmetic mean; 0 when nothing numeric was found."""
    if not values:
        return 0.0
    return sum(values, 0.0) / len(values)


def _fn_min(values: list[float]) -> float:
    if not values:
        return 0.0
    return min(values)


def _fn_max(values: list[float]) -> float:
    if not values:
        return 0.0
    return max(values)


def _fn_count(values: list[float]) -> float:
    return float(len(values))


AGGREGATE_FUNCTIONS: dict[str, Callable[[list[float]], float]] = {
    "SUM": _fn_sum,
    "AVG": _fn_average,
    "AVERAGE": _fn_average,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "COUNT": _fn_count,
}
