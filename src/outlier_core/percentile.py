from __future__ import annotations

import math
from collections.abc import Sequence

from outlier_core.errors import (
    EmptyDatasetError,
    NonFiniteValueError,
    PercentileOutOfRangeError,
)

MIN_PERCENTILE = 0.0
MAX_PERCENTILE = 100.0


def validate_percentile(percentile: float) -> float:
    # NaN is rejected here too.
    if not (MIN_PERCENTILE <= percentile <= MAX_PERCENTILE):
        raise PercentileOutOfRangeError(percentile)
    return float(percentile)


def _sorted_finite_copy(values: Sequence[float]) -> list[float]:
    ordered: list[float] = []
    for position, value in enumerate(values):
        number = float(value)
        if not math.isfinite(number):
            raise NonFiniteValueError(number, position)
        ordered.append(number)
    ordered.sort()
    return ordered


def compute_percentile(values: Sequence[float], percentile: float) -> float:
    """Return the percentile of ``values`` using linear interpolation between closest ranks.

    ``percentile`` is on the 0-100 scale. The input sequence is never reordered;
    a private sorted copy is used. Non-finite elements are rejected so the sort
    is a total order.
    """
    if len(values) == 0:
        raise EmptyDatasetError()
    percentile = validate_percentile(percentile)

    ordered = _sorted_finite_copy(values)
    index = (percentile / 100.0) * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)

    if lower == upper:
        return ordered[lower]

    weight = index - lower
    low_value = ordered[lower]
    high_value = ordered[upper]
    result = low_value * (1.0 - weight) + high_value * weight
    return min(max(result, low_value), high_value)
