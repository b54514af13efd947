"""Configuration shared by the fossil simulation modes."""

from __future__ import annotations

import sys
from dataclasses import dataclass

from fossilsampler.exceptions import ValidationError

# Stand-in for probabilities of 1 when converting probabilities to rates.
DEFAULT_PR_ONE_APPROX = 0.999

# Fraction of the shortest edge below which a tip counts as extinct.
TIP_TOLERANCE_FRACTION = 0.01

ULTRAMETRIC_TOLERANCE = sys.float_info.epsilon**0.5


@dataclass(frozen=True)
class SamplingConfig:
    """Per-call switches accepted by every sampling mode."""

    use_exact_times: bool = True
    ignore_taxonomy: bool = False
    root_edge: bool = True
    pr_one_approx: float = DEFAULT_PR_ONE_APPROX

    def __post_init__(self) -> None:
        if not 0.0 < self.pr_one_approx < 1.0:
            raise ValidationError(
                f"pr_one_approx must lie strictly between 0 and 1, got {self.pr_one_approx}"
            )
