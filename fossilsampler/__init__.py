"""Simulation of fossil occurrences on phylogenetic trees and taxonomies."""

__all__ = [
    "Node",
    "PhyloTree",
    "Taxonomy",
    "Fossils",
    "TraitValues",
    "SamplingConfig",
    "interval_ages",
    "sim_fossils_poisson",
    "sim_fossils_intervals",
    "sim_fossils_environment",
    "simulate_fossils",
    "prune_fossil_tips",
    "remove_stem_lineages",
    "remove_stem_fossils",
    "get_tip_descendants",
    "place_fossils",
    "subsample_fossils_uniform",
    "subsample_fossils_uniform_intervals",
    "subsample_fossils_oldest",
    "subsample_fossils_youngest",
    "subsample_fossils_oldest_and_youngest",
    "FossilSamplingError",
    "ConfigurationError",
    "ValidationError",
    "MismatchError",
    "EdgeResolutionError",
    "PlacementError",
    "FossilSamplingWarning",
]

from fossilsampler.config import SamplingConfig
from fossilsampler.exceptions import (
    ConfigurationError,
    EdgeResolutionError,
    FossilSamplingError,
    FossilSamplingWarning,
    MismatchError,
    PlacementError,
    ValidationError,
)
from fossilsampler.fossils import Fossils
from fossilsampler.intervals import interval_ages
from fossilsampler.parameters import TraitValues
from fossilsampler.placement import place_fossils
from fossilsampler.sampling import (
    sim_fossils_environment,
    sim_fossils_intervals,
    sim_fossils_poisson,
    simulate_fossils,
)
from fossilsampler.stem import (
    get_tip_descendants,
    prune_fossil_tips,
    remove_stem_fossils,
    remove_stem_lineages,
)
from fossilsampler.subsampling import (
    subsample_fossils_oldest,
    subsample_fossils_oldest_and_youngest,
    subsample_fossils_uniform,
    subsample_fossils_uniform_intervals,
    subsample_fossils_youngest,
)
from fossilsampler.taxonomy import Taxonomy
from fossilsampler.tree import Node, PhyloTree
