"""
Expansion of scalar or per-lineage parameters into per-species arrays.

Values are aligned with the species order of the taxonomy used for
simulation. When that taxonomy was derived from a tree, a vector is read in
tree order instead: the root edge first (when the tree has one), then one
entry per edge in edge order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from fossilsampler.exceptions import MismatchError, ValidationError
from fossilsampler.taxonomy import Taxonomy
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraitValues:
    """Per-lineage values annotated with the ordering they were generated in.

    ``from_taxonomy`` is True for values in taxonomy species order and False
    for values in tree edge order.
    """

    values: np.ndarray
    from_taxonomy: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", np.asarray(self.values, dtype=float).ravel())

    def __len__(self) -> int:
        return len(self.values)


ParameterValues = Union[float, Sequence[float], np.ndarray, TraitValues]

_RANGE_CHECKS = {
    "rate": (lambda v: v >= 0, "must be non-negative"),
    "probability": (lambda v: (v >= 0) & (v <= 1), "must be between 0 and 1"),
    "positive": (lambda v: v > 0, "must be positive"),
    "real": (lambda v: np.isfinite(v), "must be finite"),
}


def check_trait_source(
    values: ParameterValues,
    tree: Optional[PhyloTree],
    taxonomy: Optional[Taxonomy],
    name: str = "values",
) -> None:
    """Trait vectors need the object their ordering refers to."""
    if not isinstance(values, TraitValues):
        return
    if values.from_taxonomy and taxonomy is None:
        raise MismatchError(
            f"{name} simulated from taxonomy, matching taxonomy object also required"
        )
    if not values.from_taxonomy and tree is None:
        raise MismatchError(f"{name} simulated from tree, matching tree object also required")


def resolve_lineage_values(
    values: ParameterValues,
    taxonomy: Taxonomy,
    tree: Optional[PhyloTree] = None,
    name: str = "rate",
    kind: str = "rate",
) -> np.ndarray:
    """
    Return one value per species of ``taxonomy``.

    Args:
        values: A scalar (broadcast to every species) or a vector.
        taxonomy: Taxonomy the simulation runs on.
        tree: The tree ``taxonomy`` was derived from, or None if the taxonomy
            was supplied directly. Selects how a vector is ordered.
        name: Parameter name used in error messages.
        kind: One of ``"rate"``, ``"probability"``, ``"positive"``, ``"real"``.

    Raises:
        ValidationError: Wrong length or a value outside the allowed range.
    """
    if kind not in _RANGE_CHECKS:
        raise ValueError(f"Unknown parameter kind '{kind}'")

    raw = values.values if isinstance(values, TraitValues) else values
    try:
        array = np.asarray(raw, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be numeric: {e}") from e

    species = taxonomy.species
    if array.size == 1:
        resolved = np.full(len(species), array[0])
    elif array.size == 0:
        raise ValidationError(f"No {name} values provided")
    elif tree is not None:
        resolved = _tree_order_to_species(array, tree, taxonomy, name)
    elif array.size != len(species):
        raise ValidationError(
            f"The vector of {name} values provided doesn't correspond to the number of species "
            f"({array.size} values, {len(species)} species)"
        )
    else:
        resolved = array

    ok, message = _RANGE_CHECKS[kind]
    if not np.all(ok(resolved)):
        raise ValidationError(f"{name} {message}")
    return resolved


def _tree_order_to_species(
    array: np.ndarray, tree: PhyloTree, taxonomy: Taxonomy, name: str
) -> np.ndarray:
    expected = len(tree.edges) + (1 if tree.root_edge is not None else 0)
    if array.size != expected:
        raise ValidationError(
            f"The vector of {name} values provided doesn't correspond to the number of edges "
            f"({array.size} values, {expected} edges)"
        )
    # No root edge means no value was provided for it
    if tree.root_edge is None:
        array = np.concatenate([[0.0], array])

    node_order = [tree.root_id] + [child for _, child in tree.edges]
    by_node = dict(zip(node_order, array))
    try:
        return np.array([by_node[sp] for sp in taxonomy.species], dtype=float)
    except KeyError as e:
        raise MismatchError(f"Species {e.args[0]} is not a node of the tree") from None
