from collections import Counter

import numpy as np
import pytest

from fossilsampler.exceptions import (
    ConfigurationError,
    EdgeResolutionError,
    FossilSamplingWarning,
    ValidationError,
)
from fossilsampler.sampling import (
    IntervalProbabilitySampling,
    IntervalRateSampling,
    sim_fossils_intervals,
    simulate_fossils,
)
from fossilsampler.taxonomy import Taxonomy


def test_rates_only_sample_inside_their_interval(ultrametric_tree):
    fossils = sim_fossils_intervals(
        tree=ultrametric_tree, interval_ages=[0, 1, 2], rates=[0.0, 20.0], rng=1
    )
    assert len(fossils) > 0
    assert np.all((fossils.hmin >= 1.0) & (fossils.hmax <= 2.0))


def test_inexact_times_are_interval_bounds(ultrametric_tree):
    fossils = sim_fossils_intervals(
        tree=ultrametric_tree,
        interval_ages=[0, 1, 2],
        rates=[0.0, 20.0],
        use_exact_times=False,
        rng=1,
    )
    assert len(fossils) > 0
    np.testing.assert_array_equal(fossils.hmin, 1.0)
    np.testing.assert_array_equal(fossils.hmax, 2.0)


def test_strata_define_equal_intervals(ultrametric_tree):
    fossils = sim_fossils_intervals(
        tree=ultrametric_tree,
        max_age=2,
        strata=4,
        rates=[10.0, 10.0, 10.0, 10.0],
        use_exact_times=False,
        rng=2,
    )
    assert set(fossils.hmax - fossils.hmin) == {0.5}


def test_probabilities_give_at_most_one_per_interval(ultrametric_tree):
    fossils = sim_fossils_intervals(
        tree=ultrametric_tree,
        interval_ages=[0, 0.5, 1, 1.5, 2],
        probabilities=[1.0, 1.0, 1.0, 1.0],
        use_exact_times=False,
        rng=3,
    )
    counts = Counter(zip(fossils.sp, fossils.hmin))
    assert max(counts.values()) == 1


def test_certain_sampling_of_fully_spanned_intervals(ultrametric_tree):
    fossils = sim_fossils_intervals(
        tree=ultrametric_tree,
        interval_ages=[0, 1, 2],
        probabilities=[1.0, 1.0],
        use_exact_times=False,
        rng=4,
    )
    rows = set(zip(fossils.sp, fossils.hmin, fossils.hmax))
    # Tips 1..4 all live through [0, 1); the (t1,t2) edge lives through [1, 2)
    for sp in (1, 2, 3, 4):
        assert (sp, 0.0, 1.0) in rows
    assert (6, 1.0, 2.0) in rows


def test_probability_is_scaled_by_overlap(single_lineage):
    # The lineage covers a tenth of the single interval
    fossils = sim_fossils_intervals(
        taxonomy=single_lineage, interval_ages=[0, 100], probabilities=[1.0], rng=5
    )
    assert len(fossils) <= 1

    rng = np.random.default_rng(5)
    n_trials = 2000
    hits = 0
    for _ in range(n_trials):
        hits += len(
            sim_fossils_intervals(
                taxonomy=single_lineage, interval_ages=[0, 100], probabilities=[1.0], rng=rng
            )
        )
    assert hits / n_trials == pytest.approx(0.1, abs=0.03)


def test_both_rates_and_probabilities_uses_probabilities(ultrametric_tree):
    with pytest.warns(FossilSamplingWarning, match="using probabilities"):
        fossils = sim_fossils_intervals(
            tree=ultrametric_tree,
            interval_ages=[0, 1, 2],
            probabilities=[0.0, 0.0],
            rates=[1000.0, 1000.0],
            rng=6,
        )
    assert len(fossils) == 0


def test_mode_objects(ultrametric_tree):
    by_mode = simulate_fossils(
        IntervalRateSampling([0, 1, 2], [1.0, 2.0]), tree=ultrametric_tree, rng=7
    )
    by_call = sim_fossils_intervals(
        tree=ultrametric_tree, interval_ages=[0, 1, 2], rates=[1.0, 2.0], rng=7
    )
    assert by_mode == by_call


@pytest.mark.parametrize(
    "kwargs", [{"rates": [5.0, 5.0, 5.0]}, {"probabilities": [1.0, 1.0, 1.0]}]
)
def test_occurrences_lie_on_their_segment(budding_taxonomy, kwargs):
    fossils = sim_fossils_intervals(
        taxonomy=budding_taxonomy, interval_ages=[0, 1, 2, 3], rng=12, **kwargs
    )
    assert len(fossils) > 0
    for sp, edge, age in zip(fossils.sp, fossils.edge, fossils.hmin):
        assert budding_taxonomy.segment_at(int(sp), age) == int(edge)


def test_prior_fossils_are_kept_first(ultrametric_tree):
    kwargs = dict(tree=ultrametric_tree, interval_ages=[0, 1, 2], rates=[3.0, 3.0])
    prior = sim_fossils_intervals(rng=13, **kwargs)
    n_prior = len(prior)
    combined = sim_fossils_intervals(fossils=prior, rng=14, **kwargs)

    assert len(prior) == n_prior
    assert combined.take(range(n_prior)) == prior
    assert combined.take(range(n_prior, len(combined))) == sim_fossils_intervals(
        rng=14, **kwargs
    )


def test_ignore_taxonomy(budding_taxonomy):
    fossils = sim_fossils_intervals(
        taxonomy=budding_taxonomy,
        interval_ages=[0, 1, 2, 3],
        probabilities=[1.0, 1.0, 1.0],
        ignore_taxonomy=True,
        rng=15,
    )
    assert len(fossils) > 0
    assert np.all(np.isnan(fossils.sp))
    assert set(fossils.edge) <= set(budding_taxonomy.edges.tolist())


def test_gap_in_taxonomy_is_reported():
    # Species 1 has no segment between ages 1 and 2
    taxonomy = Taxonomy.from_records([(1, 1, 3.0, 2.0), (1, 2, 1.0, 0.0)])
    with pytest.raises(EdgeResolutionError, match="gap between segments"):
        sim_fossils_intervals(
            taxonomy=taxonomy, interval_ages=[0, 1, 2, 3], rates=[0.0, 50.0, 0.0], rng=16
        )


def test_warning_points_at_caller(ultrametric_tree, budding_taxonomy):
    with pytest.warns(FossilSamplingWarning, match="using taxonomy") as record:
        sim_fossils_intervals(
            tree=ultrametric_tree,
            taxonomy=budding_taxonomy,
            interval_ages=[0, 1, 2, 3],
            rates=[1.0, 1.0, 1.0],
            rng=17,
        )
    assert record[0].filename == __file__

    with pytest.warns(FossilSamplingWarning, match="using taxonomy") as record:
        simulate_fossils(
            IntervalRateSampling([0, 1, 2, 3], [1.0, 1.0, 1.0]),
            tree=ultrametric_tree,
            taxonomy=budding_taxonomy,
            rng=17,
        )
    assert record[0].filename == __file__


class TestValidation:
    def test_needs_rates_or_probabilities(self, ultrametric_tree):
        with pytest.raises(ConfigurationError):
            sim_fossils_intervals(tree=ultrametric_tree, interval_ages=[0, 1])

    def test_needs_intervals(self, ultrametric_tree):
        with pytest.raises(ConfigurationError):
            sim_fossils_intervals(tree=ultrametric_tree, rates=[1.0])

    def test_length_mismatch(self, ultrametric_tree):
        with pytest.raises(ValidationError):
            sim_fossils_intervals(
                tree=ultrametric_tree, interval_ages=[0, 1, 2], rates=[1.0]
            )

    def test_probability_range(self, ultrametric_tree):
        with pytest.raises(ValidationError):
            sim_fossils_intervals(
                tree=ultrametric_tree, interval_ages=[0, 1], probabilities=[1.5]
            )

    def test_negative_rates(self, ultrametric_tree):
        with pytest.raises(ValidationError):
            sim_fossils_intervals(
                tree=ultrametric_tree, interval_ages=[0, 1], rates=[-1.0]
            )

    def test_mode_without_ages(self, ultrametric_tree):
        with pytest.raises(ConfigurationError):
            simulate_fossils(IntervalProbabilitySampling(None, [0.5]), tree=ultrametric_tree)
