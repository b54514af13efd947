"""
Keyword-argument entry points for the three preservation models.

Each function builds a sampling mode and a :class:`SamplingConfig` and hands
them to :func:`fossilsampler.sampling.engine.simulate_fossils`.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence

from fossilsampler.config import DEFAULT_PR_ONE_APPROX, SamplingConfig
from fossilsampler.exceptions import ConfigurationError, FossilSamplingWarning
from fossilsampler.fossils import Fossils
from fossilsampler.intervals import interval_ages as resolve_interval_ages
from fossilsampler.parameters import ParameterValues
from fossilsampler.sampling.engine import RandomSource, _simulate_fossils
from fossilsampler.sampling.models import (
    EnvironmentSampling,
    IntervalProbabilitySampling,
    IntervalRateSampling,
    PoissonSampling,
)
from fossilsampler.taxonomy import Taxonomy
from fossilsampler.tree import PhyloTree


def sim_fossils_poisson(
    rate: ParameterValues,
    tree: Optional[PhyloTree] = None,
    taxonomy: Optional[Taxonomy] = None,
    fossils: Optional[Fossils] = None,
    ignore_taxonomy: bool = False,
    root_edge: bool = True,
    use_exact_times: bool = True,
    rng: RandomSource = None,
) -> Fossils:
    """
    Simulate fossils under a homogeneous Poisson sampling model.

    A vector of rates allows rate variation across lineages. With a taxonomy
    each entry applies to a species in taxonomy order; with a tree each entry
    applies to an edge in edge order, the root edge first if the tree has
    one.

    Args:
        rate: A single Poisson sampling rate or one rate per lineage.
        tree: Rooted tree with edge lengths.
        taxonomy: Species taxonomy; preferred over ``tree`` if both are given.
        fossils: Existing occurrences to append the new ones to.
        ignore_taxonomy: Report every fossil with an unknown species.
        root_edge: Include the root edge of ``tree``.
        use_exact_times: If False ``hmin``/``hmax`` are the lineage's end and
            start instead of the sampled age.
        rng: Seed or ``numpy.random.Generator``.
    """
    config = SamplingConfig(
        use_exact_times=use_exact_times,
        ignore_taxonomy=ignore_taxonomy,
        root_edge=root_edge,
    )
    return _simulate_fossils(
        PoissonSampling(rate), tree=tree, taxonomy=taxonomy, fossils=fossils, config=config, rng=rng
    )


def sim_fossils_intervals(
    tree: Optional[PhyloTree] = None,
    taxonomy: Optional[Taxonomy] = None,
    fossils: Optional[Fossils] = None,
    interval_ages: Optional[Sequence[float]] = None,
    max_age: Optional[float] = None,
    strata: Optional[int] = None,
    probabilities: Optional[Sequence[float]] = None,
    rates: Optional[Sequence[float]] = None,
    ignore_taxonomy: bool = False,
    root_edge: bool = True,
    use_exact_times: bool = True,
    rng: RandomSource = None,
) -> Fossils:
    """
    Simulate fossils under a non-uniform model of preservation for a set of
    consecutive time intervals.

    Intervals come from ``interval_ages`` or from ``max_age`` and ``strata``
    (equal-length intervals). Preservation is given either as Poisson
    ``rates`` or as sampling ``probabilities`` per interval, youngest
    interval first. With probabilities at most one fossil per species is
    sampled per interval.

    If ``use_exact_times`` is False, ``hmin``/``hmax`` are the bounds of the
    interval a fossil was sampled in.
    """
    ages = resolve_interval_ages(interval_ages, max_age=max_age, strata=strata)

    if probabilities is None and rates is None:
        raise ConfigurationError("Either rates or probabilities need to be specified")
    if probabilities is not None and rates is not None:
        warnings.warn(
            "Both probabilities and rates found, using probabilities",
            FossilSamplingWarning,
            stacklevel=2,
        )

    if probabilities is not None:
        mode = IntervalProbabilitySampling(ages, probabilities)
    else:
        mode = IntervalRateSampling(ages, rates)  # type: ignore[arg-type]

    config = SamplingConfig(
        use_exact_times=use_exact_times,
        ignore_taxonomy=ignore_taxonomy,
        root_edge=root_edge,
    )
    return _simulate_fossils(
        mode, tree=tree, taxonomy=taxonomy, fossils=fossils, config=config, rng=rng
    )


def sim_fossils_environment(
    tree: Optional[PhyloTree] = None,
    taxonomy: Optional[Taxonomy] = None,
    interval_ages: Optional[Sequence[float]] = None,
    max_age: Optional[float] = None,
    strata: Optional[int] = None,
    proxy_data: Optional[Sequence[float]] = None,
    preferred_depth: ParameterValues = 0.5,
    depth_tolerance: ParameterValues = 0.5,
    peak_abundance: ParameterValues = 0.5,
    root_edge: bool = True,
    use_rates: bool = False,
    pr_one_approx: float = DEFAULT_PR_ONE_APPROX,
    use_exact_times: bool = True,
    fossils: Optional[Fossils] = None,
    ignore_taxonomy: bool = False,
    rng: RandomSource = None,
) -> Fossils:
    """
    Simulate fossils under an environment-dependent model of preservation
    (Holland, 1995).

    The per-interval probability of sampling a lineage is
    ``PA * exp(-(d - PD)**2 / (2 * DT**2))``, where ``d`` is the interval's
    proxy value (typically relative water depth), PA the lineage's peak
    abundance, PD its preferred depth and DT its depth tolerance. PA, PD and
    DT may be single values or one value per lineage, ordered as for
    :func:`sim_fossils_poisson`.

    With ``use_rates`` the probability is converted into a Poisson rate,
    ``-ln(1 - P) / t`` for an interval of length ``t``; probabilities of 1
    are approximated by ``pr_one_approx``.

    Args:
        proxy_data: One proxy value per interval, youngest interval first.
    """
    ages = resolve_interval_ages(interval_ages, max_age=max_age, strata=strata)
    if proxy_data is None:
        raise ConfigurationError("No proxy data specified")

    mode = EnvironmentSampling(
        ages,
        proxy_data,
        peak_abundance=peak_abundance,
        preferred_depth=preferred_depth,
        depth_tolerance=depth_tolerance,
        use_rates=use_rates,
    )
    config = SamplingConfig(
        use_exact_times=use_exact_times,
        ignore_taxonomy=ignore_taxonomy,
        root_edge=root_edge,
        pr_one_approx=pr_one_approx,
    )
    return _simulate_fossils(
        mode, tree=tree, taxonomy=taxonomy, fossils=fossils, config=config, rng=rng
    )
