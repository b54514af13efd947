"""Gaussian environmental suitability and its probability-to-rate conversion."""

from __future__ import annotations

import numpy as np

from fossilsampler.config import DEFAULT_PR_ONE_APPROX


def suitability_probabilities(
    proxy_data: np.ndarray,
    peak_abundance: np.ndarray,
    preferred_depth: np.ndarray,
    depth_tolerance: np.ndarray,
) -> np.ndarray:
    """
    Per-lineage, per-interval sampling probabilities.

    Args:
        proxy_data: Proxy value (e.g. relative water depth) of each interval.
        peak_abundance: PA of each lineage, the probability at the preferred depth.
        preferred_depth: PD of each lineage, the mean of the Gaussian.
        depth_tolerance: DT of each lineage, its standard deviation.

    Returns:
        Array of shape ``(n_lineages, n_intervals)``.
    """
    proxy = np.asarray(proxy_data, dtype=float)[None, :]
    pa = np.asarray(peak_abundance, dtype=float)[:, None]
    pd = np.asarray(preferred_depth, dtype=float)[:, None]
    dt = np.asarray(depth_tolerance, dtype=float)[:, None]
    return pa * np.exp(-((proxy - pd) ** 2) / (2 * dt**2))


def probabilities_to_rates(
    probabilities: np.ndarray,
    interval_lengths: np.ndarray,
    pr_one_approx: float = DEFAULT_PR_ONE_APPROX,
) -> np.ndarray:
    """
    Poisson rates with the same chance of at least one event per interval.

    A probability of 1 would need an infinite rate, so probabilities >= 1
    are replaced by ``pr_one_approx`` first.
    """
    probabilities = np.where(probabilities >= 1, pr_one_approx, probabilities)
    return -np.log1p(-probabilities) / np.asarray(interval_lengths, dtype=float)[None, :]
