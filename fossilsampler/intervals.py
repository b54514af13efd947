"""
Stratigraphic interval boundaries.

Intervals are given by a strictly increasing vector of ages starting with
the youngest boundary; interval ``i`` spans ``[ages[i], ages[i + 1])``.
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterator, NamedTuple, Optional, Sequence

import numpy as np

from fossilsampler.exceptions import (
    ConfigurationError,
    FossilSamplingWarning,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ClippedInterval(NamedTuple):
    index: int
    lower: float
    upper: float
    clip_lower: float
    clip_upper: float

    @property
    def length(self) -> float:
        return self.upper - self.lower

    @property
    def clipped_length(self) -> float:
        return self.clip_upper - self.clip_lower


def interval_ages(
    interval_ages: Optional[Sequence[float]] = None,
    max_age: Optional[float] = None,
    strata: Optional[int] = None,
) -> np.ndarray:
    """
    Resolve interval boundaries from explicit ages or from ``max_age`` and
    ``strata`` (equal-width intervals starting at 0).

    Explicit ages take precedence when both forms are supplied.
    """
    if interval_ages is None and (max_age is None or strata is None):
        raise ConfigurationError(
            "Intervals need to be defined by specifying either interval_ages or max_age and strata"
        )

    if interval_ages is not None:
        if max_age is not None or strata is not None:
            warnings.warn(
                "Two interval definitions found, using interval_ages",
                FossilSamplingWarning,
                stacklevel=3,
            )
        ages = np.asarray(interval_ages, dtype=float)
        if ages.ndim != 1 or ages.size < 2:
            raise ValidationError("interval_ages must contain at least two boundaries")
        if not np.all(np.isfinite(ages)) or ages[0] < 0:
            raise ValidationError("interval_ages must be finite and non-negative")
        if np.any(np.diff(ages) <= 0):
            raise ValidationError("interval_ages must be strictly increasing")
        return ages

    if isinstance(strata, bool) or int(strata) != strata or strata < 1:  # type: ignore[arg-type]
        raise ValidationError(f"strata must be a positive integer, got {strata}")
    if not max_age > 0:  # type: ignore[operator]
        raise ValidationError(f"max_age must be positive, got {max_age}")
    return np.linspace(0.0, float(max_age), int(strata) + 1)  # type: ignore[arg-type]


def interval_lengths(ages: np.ndarray) -> np.ndarray:
    return np.diff(np.asarray(ages, dtype=float))


def overlapping_intervals(ages: np.ndarray, end: float, start: float) -> Iterator[ClippedInterval]:
    """
    Yield the intervals a lineage alive from ``start`` to ``end`` passes
    through, youngest first, each clipped to the lineage's span.

    Intervals entirely younger than ``end`` are skipped; iteration stops at
    the first interval whose lower bound is older than ``start``.
    """
    for i in range(len(ages) - 1):
        lower, upper = float(ages[i]), float(ages[i + 1])
        if upper < end:
            continue
        if lower > start:
            break
        yield ClippedInterval(i, lower, upper, max(end, lower), min(start, upper))
