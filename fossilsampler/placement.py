"""Placement of fossil occurrences on the nodes of a tree."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np

from fossilsampler.exceptions import PlacementError, ValidationError
from fossilsampler.fossils import Fossils
from fossilsampler.stem import get_tip_descendants, remove_stem_fossils
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)


def place_fossils(
    tree: PhyloTree, fossils: Fossils, ext_tree: Optional[PhyloTree] = None
) -> np.ndarray:
    """
    Find the direct ancestral node of each fossil occurrence.

    Without ``ext_tree`` every fossil is placed on the node at the top of the
    edge it was sampled on. With ``ext_tree``, the extant counterpart of
    ``tree`` (e.g. from :func:`prune_fossil_tips`), fossils are placed in the
    crown clades of ``tree`` and the result is given as node ids of
    ``ext_tree``. Fossils older than the crown group's MRCA are discarded
    first in that case, so the result then aligns with
    ``remove_stem_fossils(fossils, tree)``.

    Args:
        tree: The tree the fossils were simulated on.
        fossils: Occurrences with known edges.
        ext_tree: Ultrametric extant counterpart of ``tree``.

    Returns:
        One node id per (kept) occurrence.

    Raises:
        PlacementError: A fossil lies on the root edge, or has no qualifying
            ancestor.
        ValidationError: Non-binary trees, non-ultrametric ``ext_tree`` or
            unknown fossil edges.
    """
    edges = fossils.edge
    if np.any(edges == tree.root_id):
        raise PlacementError("Can't handle fossil samples on the root edge")

    if ext_tree is None:
        ext_tree = tree
    else:
        fossils = remove_stem_fossils(fossils, tree)
        edges = fossils.edge
        if not ext_tree.is_ultrametric():
            raise ValidationError("User supplied extant tree is not ultrametric")

    if not tree.is_binary() or not ext_tree.is_binary():
        raise ValidationError("Both trees must be strictly bifurcating")
    if np.any(np.isnan(edges)):
        raise ValidationError("Fossils without an edge cannot be placed")

    # Nodes of tree corresponding to the clades of ext_tree
    candidates = {tree.mrca(tips) for tips in get_tip_descendants(ext_tree).values()}

    found = np.empty(len(edges), dtype=np.int64)
    for i, edge in enumerate(edges.astype(np.int64)):
        for node_id in tree.ancestors(int(edge)):
            if node_id in candidates:
                found[i] = node_id
                break
        else:
            raise PlacementError(f"Fossil number {i} does not belong to the crown group")

    if ext_tree is tree:
        return found

    descendants = get_tip_descendants(tree)
    extant = set(ext_tree.tip_labels)
    translated: Dict[int, int] = {}
    for node_id in np.unique(found):
        shared = [label for label in descendants[int(node_id)] if label in extant]
        translated[int(node_id)] = ext_tree.mrca(shared)

    logger.debug(f"Placed {len(found)} fossils on {len(translated)} extant nodes")
    return np.array([translated[int(node_id)] for node_id in found], dtype=np.int64)
