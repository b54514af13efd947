"""
Custom exceptions and warnings for fossil simulation and post-processing.
"""

from __future__ import annotations

from typing import Optional, Tuple


class FossilSamplingError(Exception):
    """Base exception for fossil sampling errors."""

    pass


class ConfigurationError(FossilSamplingError):
    """Raised when a call does not specify enough information to run."""

    pass


class ValidationError(FossilSamplingError, ValueError):
    """Raised when an argument has the wrong type, length or range."""

    pass


class MismatchError(FossilSamplingError):
    """Raised when two inputs that must describe the same tree disagree."""

    pass


class EdgeResolutionError(FossilSamplingError):
    """Raised when a sampled age cannot be attributed to exactly one edge.

    This points at a malformed taxonomy (overlapping or missing segments)
    or at an age outside the lifespan of the species, and is never
    recovered from.
    """

    @classmethod
    def for_age(
        cls,
        species: int,
        age: float,
        matches: int,
        lifespan: Optional[Tuple[float, float]] = None,
    ) -> "EdgeResolutionError":
        prefix = f"Age {age:.6g} of species {species}"
        if matches > 1:
            return cls(f"{prefix} matches {matches} overlapping segments.")
        if lifespan is not None and not lifespan[0] <= age <= lifespan[1]:
            end, start = lifespan
            return cls(f"{prefix} lies outside its lifespan [{end:.6g}, {start:.6g}].")
        return cls(
            f"{prefix} falls in a gap between segments; "
            "the taxonomy segments of this species are not contiguous."
        )


class PlacementError(FossilSamplingError):
    """Raised when a fossil cannot be placed on a qualifying ancestral node."""

    pass


class FossilSamplingWarning(UserWarning):
    """Non-fatal diagnostic: the call proceeds with a documented fallback."""

    pass
