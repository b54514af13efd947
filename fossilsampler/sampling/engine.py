"""
Taxonomy-aware fossil sampling engine.

Every sampling mode is reduced to a plan with one of three kernels:

- ``poisson``: one Poisson count over each lineage's whole lifespan;
- ``counts``: one Poisson count per lineage per interval;
- ``presence``: at most one fossil per lineage per interval.

Lineages are visited in taxonomy order and intervals youngest first. Within
one lineage/interval the draws are always made in the same order (count,
then ages; or candidate age, then the acceptance draw), so results are
reproducible for a given seed.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np

from fossilsampler.config import SamplingConfig
from fossilsampler.exceptions import (
    ConfigurationError,
    FossilSamplingWarning,
    ValidationError,
)
from fossilsampler.fossils import Fossils
from fossilsampler.intervals import (
    interval_ages,
    interval_lengths,
    overlapping_intervals,
)
from fossilsampler.parameters import (
    ParameterValues,
    check_trait_source,
    resolve_lineage_values,
)
from fossilsampler.sampling.environment import (
    probabilities_to_rates,
    suitability_probabilities,
)
from fossilsampler.sampling.models import (
    EnvironmentSampling,
    IntervalProbabilitySampling,
    IntervalRateSampling,
    PoissonSampling,
    SamplingMode,
)
from fossilsampler.taxonomy import Lineage, Taxonomy
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)

RandomSource = Union[None, int, np.random.SeedSequence, np.random.Generator]


@dataclass(frozen=True)
class SamplingSource:
    """The taxonomy a simulation runs on, and where it came from."""

    taxonomy: Taxonomy
    derived_from: Optional[PhyloTree]
    user_tree: Optional[PhyloTree]
    user_taxonomy: Optional[Taxonomy]

    @property
    def from_taxonomy(self) -> bool:
        return self.derived_from is None

    def resolve(self, values: ParameterValues, name: str, kind: str) -> np.ndarray:
        check_trait_source(values, self.user_tree, self.user_taxonomy, name=name)
        return resolve_lineage_values(
            values, self.taxonomy, tree=self.derived_from, name=name, kind=kind
        )


@dataclass(frozen=True)
class _SamplingPlan:
    kernel: str
    values: np.ndarray
    ages: Optional[np.ndarray] = None


def resolve_source(
    tree: Optional[PhyloTree],
    taxonomy: Optional[Taxonomy],
    root_edge: bool = True,
    stacklevel: int = 2,
) -> SamplingSource:
    """
    Pick the taxonomy to simulate on, deriving a symmetric one from ``tree`` if needed.

    ``stacklevel`` is passed to the warning issued when both are given.
    """
    if tree is None and taxonomy is None:
        raise ConfigurationError("Specify tree or taxonomy object")
    if tree is not None and not isinstance(tree, PhyloTree):
        raise ValidationError("tree must be a PhyloTree")
    if taxonomy is not None and not isinstance(taxonomy, Taxonomy):
        raise ValidationError("taxonomy must be a Taxonomy")

    if taxonomy is not None:
        if tree is not None:
            warnings.warn(
                "tree and taxonomy both defined, using taxonomy",
                FossilSamplingWarning,
                stacklevel=stacklevel,
            )
        return SamplingSource(taxonomy, None, tree, taxonomy)

    assert tree is not None
    if not tree.has_edge_lengths():
        raise ValidationError("tree must have edge lengths")
    if not tree.is_rooted():
        raise ValidationError("tree must be rooted")
    return SamplingSource(Taxonomy.from_tree(tree, root_edge=root_edge), tree, tree, None)


def _per_interval(values: object, n_intervals: int, name: str) -> np.ndarray:
    try:
        array = np.asarray(values, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be numeric: {e}") from e
    if array.size != n_intervals:
        raise ValidationError(f"Length mismatch between interval ages and sampling {name}")
    return array


def _checked_ages(ages: object) -> np.ndarray:
    if ages is None:
        raise ConfigurationError("Sampling mode has no interval ages")
    return interval_ages(interval_ages=ages)  # type: ignore[arg-type]


def _plan(mode: SamplingMode, source: SamplingSource, config: SamplingConfig) -> _SamplingPlan:
    n_species = len(source.taxonomy.species)

    if isinstance(mode, PoissonSampling):
        rates = source.resolve(mode.rate, "rate", "rate")
        return _SamplingPlan("poisson", rates)

    if isinstance(mode, IntervalRateSampling):
        ages = _checked_ages(mode.interval_ages)
        rates = _per_interval(mode.rates, ages.size - 1, "rates")
        if np.any(~(rates >= 0)):
            raise ValidationError("Sampling rates must be non-negative")
        return _SamplingPlan("counts", np.tile(rates, (n_species, 1)), ages)

    if isinstance(mode, IntervalProbabilitySampling):
        ages = _checked_ages(mode.interval_ages)
        probabilities = _per_interval(mode.probabilities, ages.size - 1, "probabilities")
        if np.any(~((probabilities >= 0) & (probabilities <= 1))):
            raise ValidationError("Sampling probabilities must be between 0 and 1")
        return _SamplingPlan("presence", np.tile(probabilities, (n_species, 1)), ages)

    if isinstance(mode, EnvironmentSampling):
        ages = _checked_ages(mode.interval_ages)
        if mode.proxy_data is None:
            raise ConfigurationError("No proxy data specified")
        proxy = np.asarray(mode.proxy_data, dtype=float).ravel()
        if proxy.size != ages.size - 1:
            raise ValidationError("Mismatch between the number of intervals and proxy data values")
        if not np.all(np.isfinite(proxy)):
            raise ValidationError("proxy_data must be finite")

        probabilities = suitability_probabilities(
            proxy,
            source.resolve(mode.peak_abundance, "PA", "probability"),
            source.resolve(mode.preferred_depth, "PD", "real"),
            source.resolve(mode.depth_tolerance, "DT", "positive"),
        )
        if mode.use_rates:
            rates = probabilities_to_rates(
                probabilities, interval_lengths(ages), config.pr_one_approx
            )
            return _SamplingPlan("counts", rates, ages)
        return _SamplingPlan("presence", probabilities, ages)

    raise ValidationError(f"Unknown sampling mode {type(mode).__name__}")


class _OccurrenceBuffer:
    """Collects one array chunk per lineage/interval and concatenates once."""

    def __init__(self) -> None:
        self._sp: List[np.ndarray] = []
        self._edge: List[np.ndarray] = []
        self._hmin: List[np.ndarray] = []
        self._hmax: List[np.ndarray] = []
        self.count = 0

    def add(self, sp: float, edges: np.ndarray, hmin: np.ndarray, hmax: np.ndarray) -> None:
        k = len(edges)
        self._sp.append(np.full(k, sp, dtype=float))
        self._edge.append(np.asarray(edges, dtype=float))
        self._hmin.append(np.broadcast_to(np.asarray(hmin, dtype=float), (k,)))
        self._hmax.append(np.broadcast_to(np.asarray(hmax, dtype=float), (k,)))
        self.count += k

    def to_fossils(self, from_taxonomy: bool) -> Fossils:
        if not self.count:
            return Fossils(from_taxonomy=from_taxonomy)
        return Fossils.from_arrays(
            np.concatenate(self._sp),
            np.concatenate(self._edge),
            np.concatenate(self._hmin),
            np.concatenate(self._hmax),
            from_taxonomy=from_taxonomy,
        )


def _sample_poisson(
    lineage: Lineage,
    rate: float,
    rng: np.random.Generator,
    buffer: _OccurrenceBuffer,
    sp: float,
    exact: bool,
) -> None:
    k = rng.poisson(rate * lineage.span)
    if k == 0:
        return
    ages = rng.uniform(lineage.end, lineage.start, size=k)
    edges = lineage.resolve_edges(ages)
    if exact:
        buffer.add(sp, edges, ages, ages)
    else:
        buffer.add(sp, edges, lineage.end, lineage.start)


def _sample_counts(
    lineage: Lineage,
    rates: np.ndarray,
    ages: np.ndarray,
    rng: np.random.Generator,
    buffer: _OccurrenceBuffer,
    sp: float,
    exact: bool,
) -> None:
    for interval in overlapping_intervals(ages, lineage.end, lineage.start):
        k = rng.poisson(rates[interval.index] * interval.clipped_length)
        if k == 0:
            continue
        times = rng.uniform(interval.clip_lower, interval.clip_upper, size=k)
        edges = lineage.resolve_edges(times)
        if exact:
            buffer.add(sp, edges, times, times)
        else:
            buffer.add(sp, edges, interval.lower, interval.upper)


def _sample_presence(
    lineage: Lineage,
    probabilities: np.ndarray,
    ages: np.ndarray,
    rng: np.random.Generator,
    buffer: _OccurrenceBuffer,
    sp: float,
    exact: bool,
) -> None:
    for interval in overlapping_intervals(ages, lineage.end, lineage.start):
        # Scale by the share of the interval the lineage actually spans
        pr = probabilities[interval.index] * interval.clipped_length / interval.length
        time = rng.uniform(interval.clip_lower, interval.clip_upper)
        if rng.uniform() < pr:
            edges = lineage.resolve_edges(np.array([time]))
            if exact:
                buffer.add(sp, edges, time, time)
            else:
                buffer.add(sp, edges, interval.lower, interval.upper)


def simulate_fossils(
    mode: SamplingMode,
    tree: Optional[PhyloTree] = None,
    taxonomy: Optional[Taxonomy] = None,
    fossils: Optional[Fossils] = None,
    config: Optional[SamplingConfig] = None,
    rng: RandomSource = None,
) -> Fossils:
    """
    Simulate fossil occurrences on a tree or taxonomy.

    If both ``tree`` and ``taxonomy`` are given the taxonomy is used. Without
    a taxonomy every edge of ``tree`` is treated as a species of its own.

    Args:
        mode: The sampling model and its parameters.
        tree: Rooted tree with edge lengths.
        taxonomy: Species taxonomy.
        fossils: Existing occurrences; the new ones are appended after them.
        config: Exact times, species identity and root edge switches.
        rng: Seed or ``numpy.random.Generator`` used for every draw.

    Returns:
        A new Fossils collection.
    """
    return _simulate_fossils(mode, tree, taxonomy, fossils, config, rng)


def _simulate_fossils(
    mode: SamplingMode,
    tree: Optional[PhyloTree],
    taxonomy: Optional[Taxonomy],
    fossils: Optional[Fossils],
    config: Optional[SamplingConfig],
    rng: RandomSource,
) -> Fossils:
    # Called only from the public entry points, so user code is two frames up
    config = config or SamplingConfig()
    source = resolve_source(tree, taxonomy, root_edge=config.root_edge, stacklevel=4)

    if fossils is not None:
        if not isinstance(fossils, Fossils):
            raise ValidationError("fossils must be a Fossils collection")
        fossils.check_edges(source.taxonomy)

    plan = _plan(mode, source, config)
    rng = np.random.default_rng(rng)
    lineages = source.taxonomy.lineages()
    logger.debug(
        f"Sampling {type(mode).__name__} over {len(lineages)} lineages "
        f"(kernel={plan.kernel}, exact_times={config.use_exact_times})"
    )

    buffer = _OccurrenceBuffer()
    for i, lineage in enumerate(lineages):
        sp = np.nan if config.ignore_taxonomy else float(lineage.sp)
        if plan.kernel == "poisson":
            _sample_poisson(lineage, plan.values[i], rng, buffer, sp, config.use_exact_times)
        elif plan.kernel == "counts":
            _sample_counts(
                lineage, plan.values[i], plan.ages, rng, buffer, sp, config.use_exact_times  # type: ignore[arg-type]
            )
        else:
            _sample_presence(
                lineage, plan.values[i], plan.ages, rng, buffer, sp, config.use_exact_times  # type: ignore[arg-type]
            )

    logger.debug(f"Sampled {buffer.count} fossils")
    sampled = buffer.to_fossils(from_taxonomy=source.from_taxonomy)
    if fossils is None:
        return sampled
    return fossils.concat(sampled, from_taxonomy=source.from_taxonomy)
