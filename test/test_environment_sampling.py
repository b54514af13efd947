import numpy as np
import pytest

from fossilsampler.exceptions import (
    ConfigurationError,
    EdgeResolutionError,
    FossilSamplingWarning,
    ValidationError,
)
from fossilsampler.parameters import TraitValues
from fossilsampler.sampling import sim_fossils_environment, sim_fossils_intervals
from fossilsampler.sampling.environment import (
    probabilities_to_rates,
    suitability_probabilities,
)
from fossilsampler.taxonomy import Taxonomy


def test_suitability_is_gaussian_in_proxy():
    probabilities = suitability_probabilities(
        np.array([0.5, 1.5]),
        peak_abundance=np.array([0.5, 1.0]),
        preferred_depth=np.array([0.5, 1.5]),
        depth_tolerance=np.array([1.0, 1.0]),
    )
    assert probabilities.shape == (2, 2)
    np.testing.assert_allclose(
        probabilities,
        [[0.5, 0.5 * np.exp(-0.5)], [np.exp(-0.5), 1.0]],
    )


def test_probabilities_to_rates():
    rates = probabilities_to_rates(
        np.array([[0.5, 1.0]]), np.array([2.0, 1.0]), pr_one_approx=0.999
    )
    np.testing.assert_allclose(rates, [[np.log(2.0) / 2.0, -np.log(0.001)]])


def test_zero_peak_abundance_samples_nothing(ultrametric_tree):
    fossils = sim_fossils_environment(
        tree=ultrametric_tree,
        interval_ages=[0, 1, 2],
        proxy_data=[0.5, 0.5],
        peak_abundance=0.0,
        rng=1,
    )
    assert len(fossils) == 0


def test_rate_and_probability_models_agree():
    # 500 lineages over 10 unit intervals, P = 0.1 everywhere
    taxonomy = Taxonomy.from_records([(sp, sp, 10.0, 0.0) for sp in range(1, 501)])
    kwargs = dict(
        taxonomy=taxonomy,
        interval_ages=np.arange(11),
        proxy_data=np.zeros(10),
        peak_abundance=0.1,
        preferred_depth=0.0,
        depth_tolerance=1.0,
        use_exact_times=False,
    )

    def occupancy(fossils):
        return len(set(zip(fossils.sp, fossils.hmin))) / 5000

    by_probability = sim_fossils_environment(rng=10, **kwargs)
    by_rate = sim_fossils_environment(use_rates=True, rng=11, **kwargs)

    assert occupancy(by_probability) == pytest.approx(0.1, abs=0.02)
    assert occupancy(by_rate) == pytest.approx(0.1, abs=0.02)


def test_per_lineage_parameters(budding_taxonomy):
    # Only species 3 has a non-zero peak abundance
    fossils = sim_fossils_environment(
        taxonomy=budding_taxonomy,
        interval_ages=[0, 1, 2, 3],
        proxy_data=[0.0, 0.0, 0.0],
        peak_abundance=TraitValues([0.0, 0.0, 1.0, 0.0], from_taxonomy=True),
        preferred_depth=0.0,
        rng=2,
    )
    assert set(fossils.sp) == {3.0}


def test_edge_order_parameters(ultrametric_tree):
    # Edge order is 6, 1, 2, 7, 3, 4
    fossils = sim_fossils_environment(
        tree=ultrametric_tree,
        interval_ages=[0, 1, 2],
        proxy_data=[0.0, 0.0],
        peak_abundance=[1, 0, 0, 0, 0, 0],
        preferred_depth=0.0,
        use_exact_times=False,
        rng=3,
    )
    assert set(fossils.edge) == {6.0}


def test_certain_rates_use_pr_one_approx(budding_taxonomy):
    # PA = 1 at the preferred depth gives P = 1, replaced by pr_one_approx
    env = sim_fossils_environment(
        taxonomy=budding_taxonomy,
        interval_ages=np.arange(4),
        proxy_data=np.zeros(3),
        peak_abundance=1.0,
        preferred_depth=0.0,
        use_rates=True,
        pr_one_approx=0.5,
        rng=4,
    )
    intervals = sim_fossils_intervals(
        taxonomy=budding_taxonomy,
        interval_ages=np.arange(4),
        rates=[-np.log1p(-0.5)] * 3,
        rng=4,
    )
    assert len(env) > 0
    assert env == intervals


def test_occurrences_lie_on_their_segment(budding_taxonomy):
    fossils = sim_fossils_environment(
        taxonomy=budding_taxonomy,
        interval_ages=[0, 1, 2, 3],
        proxy_data=[0.0, 0.0, 0.0],
        peak_abundance=1.0,
        preferred_depth=0.0,
        rng=5,
    )
    assert len(fossils) > 0
    for sp, edge, age in zip(fossils.sp, fossils.edge, fossils.hmin):
        assert budding_taxonomy.segment_at(int(sp), age) == int(edge)


def test_prior_fossils_are_kept_first(ultrametric_tree):
    kwargs = dict(
        tree=ultrametric_tree,
        interval_ages=[0, 1, 2],
        proxy_data=[0.5, 0.5],
        peak_abundance=0.9,
    )
    prior = sim_fossils_environment(rng=6, **kwargs)
    n_prior = len(prior)
    assert n_prior > 0
    combined = sim_fossils_environment(fossils=prior, rng=7, **kwargs)

    assert len(prior) == n_prior
    assert combined.take(range(n_prior)) == prior
    assert combined.take(range(n_prior, len(combined))) == sim_fossils_environment(
        rng=7, **kwargs
    )


def test_ignore_taxonomy(budding_taxonomy):
    fossils = sim_fossils_environment(
        taxonomy=budding_taxonomy,
        interval_ages=[0, 1, 2, 3],
        proxy_data=[0.0, 0.0, 0.0],
        peak_abundance=1.0,
        preferred_depth=0.0,
        ignore_taxonomy=True,
        rng=8,
    )
    assert len(fossils) > 0
    assert np.all(np.isnan(fossils.sp))
    assert set(fossils.edge) <= set(budding_taxonomy.edges.tolist())


def test_gap_in_taxonomy_is_reported():
    taxonomy = Taxonomy.from_records([(1, 1, 3.0, 2.0), (1, 2, 1.0, 0.0)])
    with pytest.raises(EdgeResolutionError, match="gap between segments"):
        sim_fossils_environment(
            taxonomy=taxonomy,
            interval_ages=[0, 1, 2, 3],
            proxy_data=[5.0, 0.0, 5.0],
            peak_abundance=1.0,
            preferred_depth=0.0,
            depth_tolerance=0.1,
            rng=9,
        )


def test_warning_points_at_caller(ultrametric_tree, budding_taxonomy):
    with pytest.warns(FossilSamplingWarning, match="using taxonomy") as record:
        sim_fossils_environment(
            tree=ultrametric_tree,
            taxonomy=budding_taxonomy,
            interval_ages=[0, 1, 2, 3],
            proxy_data=[0.0, 0.0, 0.0],
            rng=10,
        )
    assert record[0].filename == __file__


class TestValidation:
    def test_needs_proxy_data(self, ultrametric_tree):
        with pytest.raises(ConfigurationError):
            sim_fossils_environment(tree=ultrametric_tree, interval_ages=[0, 1])

    def test_proxy_length(self, ultrametric_tree):
        with pytest.raises(ValidationError):
            sim_fossils_environment(
                tree=ultrametric_tree, interval_ages=[0, 1, 2], proxy_data=[0.0]
            )

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"peak_abundance": 1.5},
            {"depth_tolerance": 0.0},
            {"preferred_depth": np.nan},
            {"pr_one_approx": 1.0},
        ],
    )
    def test_parameter_ranges(self, ultrametric_tree, kwargs):
        with pytest.raises(ValidationError):
            sim_fossils_environment(
                tree=ultrametric_tree,
                interval_ages=[0, 1, 2],
                proxy_data=[0.0, 0.0],
                **kwargs,
            )
