"""Sampling modes accepted by :func:`fossilsampler.sampling.engine.simulate_fossils`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from fossilsampler.parameters import ParameterValues


@dataclass(frozen=True)
class PoissonSampling:
    """Homogeneous Poisson sampling along each lineage.

    ``rate`` is a single rate or one rate per lineage.
    """

    rate: ParameterValues


@dataclass(frozen=True)
class IntervalRateSampling:
    """Piecewise-constant Poisson rates, one per stratigraphic interval."""

    interval_ages: Sequence[float]
    rates: Sequence[float]


@dataclass(frozen=True)
class IntervalProbabilitySampling:
    """At most one fossil per lineage per interval, with the given probabilities."""

    interval_ages: Sequence[float]
    probabilities: Sequence[float]


@dataclass(frozen=True)
class EnvironmentSampling:
    """
    Environment-dependent preservation (Holland, 1995).

    The per-interval sampling probability of a lineage is
    ``PA * exp(-(d - PD)**2 / (2 * DT**2))`` where ``d`` is the interval's
    proxy value (e.g. water depth), PA the peak abundance, PD the preferred
    depth and DT the depth tolerance. With ``use_rates`` the probability is
    turned into a Poisson rate, ``-ln(1 - P) / interval_length``.
    """

    interval_ages: Sequence[float]
    proxy_data: Sequence[float]
    peak_abundance: ParameterValues = 0.5
    preferred_depth: ParameterValues = 0.5
    depth_tolerance: ParameterValues = 0.5
    use_rates: bool = False


SamplingMode = Union[
    PoissonSampling,
    IntervalRateSampling,
    IntervalProbabilitySampling,
    EnvironmentSampling,
]
