"""
Crown and stem group utilities.

The crown group is spanned by the most recent common ancestor of the extant
tips (those at maximum distance from the root); everything outside it is
stem.
"""

from __future__ import annotations

import logging
import warnings
from typing import Dict, List

import numpy as np

from fossilsampler.config import TIP_TOLERANCE_FRACTION
from fossilsampler.exceptions import FossilSamplingWarning, ValidationError
from fossilsampler.fossils import Fossils
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)


def _crown_tip_labels(tree: PhyloTree) -> List[str]:
    """Labels of the extant tips, in tip id order."""
    if not tree.has_edge_lengths():
        raise ValidationError("tree must have edge lengths")
    if tree.is_ultrametric():
        return tree.tip_labels

    tol = np.nanmin(tree.edge_lengths) * TIP_TOLERANCE_FRACTION
    depths = tree.tip_depths()
    deepest = max(depths.values())
    return [label for label in tree.tip_labels if depths[label] >= deepest - tol]


def _crown_node(tree: PhyloTree) -> int:
    return tree.mrca(_crown_tip_labels(tree))


def prune_fossil_tips(tree: PhyloTree) -> PhyloTree:
    """
    Remove extinct lineages from a tree.

    A tip is extinct when its distance from the root falls short of the
    deepest tip by more than 1/100 of the shortest edge. An ultrametric tree
    has no extinct tips and is returned as is.
    """
    if tree.is_ultrametric():
        warnings.warn(
            "Tree is ultrametric and no fossil tips can be pruned",
            FossilSamplingWarning,
            stacklevel=2,
        )
        return tree

    crown = set(_crown_tip_labels(tree))
    extinct = [label for label in tree.tip_labels if label not in crown]
    logger.debug(f"Pruning {len(extinct)} fossil tips")
    return tree.drop_tips(extinct)


def get_tip_descendants(tree: PhyloTree) -> Dict[int, List[str]]:
    """
    Map every internal node id to the labels of the tips below it.

    Tips are listed in cladewise order.
    """
    descendants: Dict[int, List[str]] = {}
    for node in tree.postorder():
        if node.is_leaf():
            descendants[node.node_id] = [node.name]  # type: ignore[index]
            continue
        tips: List[str] = []
        for child in node.children:
            tips.extend(descendants[child.node_id])  # type: ignore[index]
        descendants[node.node_id] = tips  # type: ignore[index]

    return {
        node_id: descendants[node_id]
        for node_id in range(tree.n_tips + 1, tree.n_nodes + 1)
    }


def remove_stem_lineages(tree: PhyloTree) -> PhyloTree:
    """Drop every tip that does not descend from the crown group's MRCA."""
    crown_tips = set(tree.descendant_tips(_crown_node(tree)))
    if len(crown_tips) == tree.n_tips:
        warnings.warn(
            "No stem lineages found, returning original tree",
            FossilSamplingWarning,
            stacklevel=2,
        )
        return tree

    stem = [label for label in tree.tip_labels if label not in crown_tips]
    logger.debug(f"Removing {len(stem)} stem lineages")
    return tree.drop_tips(stem)


def remove_stem_fossils(fossils: Fossils, tree: PhyloTree) -> Fossils:
    """
    Keep only the occurrences that lie in the crown group.

    An occurrence is crown if its edge leads to a node strictly below the
    crown MRCA; the edge above the crown MRCA and the root edge are stem.
    Occurrences with an unknown edge are kept.
    """
    crown_node = _crown_node(tree)
    if len(tree.descendant_tips(crown_node)) == tree.n_tips:
        return fossils

    crown = set(tree.descendant_nodes(crown_node))
    edges = fossils.edge
    keep = np.array(
        [np.isnan(edge) or int(edge) in crown for edge in edges], dtype=bool
    )
    logger.debug(f"Removing {int((~keep).sum())} stem fossils")
    return fossils.filter(keep)
