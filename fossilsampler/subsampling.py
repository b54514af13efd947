"""
Subsampling of fossil occurrences.

Uniform policies draw rows without replacement; the oldest/youngest policies
keep the extreme occurrences of every clade found by :func:`place_fossils`.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Sequence

import numpy as np

from fossilsampler.exceptions import ValidationError
from fossilsampler.fossils import Fossils
from fossilsampler.placement import place_fossils
from fossilsampler.sampling.engine import RandomSource
from fossilsampler.stem import prune_fossil_tips, remove_stem_fossils
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)


def _check_proportion(proportion: float, name: str = "proportion") -> float:
    if not 0.0 <= proportion <= 1.0:
        raise ValidationError(f"{name} must be between 0 and 1, got {proportion}")
    return float(proportion)


def _sample_indices(
    indices: np.ndarray, proportion: float, rng: np.random.Generator
) -> np.ndarray:
    size = int(np.floor(len(indices) * proportion))
    return rng.choice(indices, size=size, replace=False)


def subsample_fossils_uniform(
    fossils: Fossils, proportion: float, rng: RandomSource = None
) -> Fossils:
    """Uniform random sample of ``floor(n * proportion)`` occurrences."""
    proportion = _check_proportion(proportion)
    rng = np.random.default_rng(rng)
    keep = _sample_indices(np.arange(len(fossils)), proportion, rng)
    return fossils.take(keep)


def subsample_fossils_uniform_intervals(
    fossils: Fossils,
    proportions: Sequence[float],
    times: Sequence[float],
    rng: RandomSource = None,
) -> Fossils:
    """
    Uniform random sample within each of a series of time bins.

    ``times`` are increasing bin boundaries starting with the youngest (0
    for today); no maximum age is given. Bin ``i`` holds the occurrences with
    ``times[i] <= hmax < times[i + 1]``, the last bin those with
    ``hmax > times[-1]``, and ``proportions[i]`` of its rows are kept.
    """
    proportions = np.asarray(proportions, dtype=float).ravel()
    times = np.asarray(times, dtype=float).ravel()
    if proportions.size != times.size:
        raise ValidationError("Length mismatch between rate shift times and sampling rates")
    for proportion in proportions:
        _check_proportion(proportion, "proportions")

    rng = np.random.default_rng(rng)
    ages = fossils.hmax
    indices = np.arange(len(fossils))
    keep: List[np.ndarray] = []
    for i, proportion in enumerate(proportions):
        if i == len(times) - 1:
            in_bin = ages > times[i]
        else:
            in_bin = (ages >= times[i]) & (ages < times[i + 1])
        keep.append(_sample_indices(indices[in_bin], proportion, rng))

    return fossils.take(np.concatenate(keep) if keep else [])


def _placement_groups(fossils: Fossils, tree: PhyloTree, complete: bool):
    if complete:
        return fossils, place_fossils(tree, fossils)
    ext_tree = prune_fossil_tips(tree)
    fossils = remove_stem_fossils(fossils, tree)
    return fossils, place_fossils(tree, fossils, ext_tree)


def _extremes(
    fossils: Fossils,
    tree: PhyloTree,
    complete: bool,
    selectors: Sequence[Callable[[Fossils, np.ndarray], np.ndarray]],
) -> Fossils:
    fossils, nodes = _placement_groups(fossils, tree, complete)

    keep: List[int] = []
    seen = set()
    for select in selectors:
        # Groups in order of first appearance; ties within a group are all kept
        for node_id in dict.fromkeys(nodes.tolist()):
            for index in select(fossils, np.flatnonzero(nodes == node_id)):
                if index not in seen:
                    seen.add(index)
                    keep.append(int(index))

    logger.debug(f"Kept {len(keep)} of {len(fossils)} fossils from {len(set(nodes.tolist()))} nodes")
    return fossils.take(keep)


def _oldest(fossils: Fossils, group: np.ndarray) -> np.ndarray:
    hmax = fossils.hmax[group]
    return group[hmax == hmax.max()]


def _youngest(fossils: Fossils, group: np.ndarray) -> np.ndarray:
    hmin = fossils.hmin[group]
    return group[hmin == hmin.min()]


def subsample_fossils_oldest(
    fossils: Fossils, tree: PhyloTree, complete: bool = True
) -> Fossils:
    """
    Keep the oldest occurrence (largest ``hmax``) placed on each node.

    With ``complete`` the nodes are those of ``tree``; otherwise fossils are
    placed in the clades of its extant counterpart and stem fossils dropped.
    """
    return _extremes(fossils, tree, complete, [_oldest])


def subsample_fossils_youngest(
    fossils: Fossils, tree: PhyloTree, complete: bool = True
) -> Fossils:
    """Keep the youngest occurrence (smallest ``hmin``) placed on each node."""
    return _extremes(fossils, tree, complete, [_youngest])


def subsample_fossils_oldest_and_youngest(
    fossils: Fossils, tree: PhyloTree, complete: bool = True
) -> Fossils:
    """
    Keep both the oldest and the youngest occurrence placed on each node.

    All oldest rows come first, in order of first appearance of their node,
    followed by the youngest rows not already kept. An occurrence that is
    both is listed once.
    """
    return _extremes(fossils, tree, complete, [_oldest, _youngest])
