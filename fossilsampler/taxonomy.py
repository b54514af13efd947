"""
Species taxonomy on a tree: which edges, over which ages, belong to a species.

A taxonomy is a table with one row per taxonomic segment::

    sp    edge   start   end
    7     7      3.2     2.0
    7     9      2.0     0.0

``start`` is the older age of the segment, ``end`` the younger one. A species
persisting through a speciation event elsewhere in the tree owns several
contiguous rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from fossilsampler.exceptions import EdgeResolutionError, ValidationError
from fossilsampler.tree import PhyloTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    edge: int
    start: float
    end: float


class Lineage:
    """The segments of one species, with vectorised age-to-edge lookup."""

    __slots__ = ("sp", "edges", "starts", "ends", "start", "end")

    def __init__(self, sp: int, edges: np.ndarray, starts: np.ndarray, ends: np.ndarray):
        self.sp = sp
        self.edges = edges
        self.starts = starts
        self.ends = ends
        self.start = float(starts.max())
        self.end = float(ends.min())

    def __repr__(self) -> str:
        return f"Lineage(sp={self.sp}, start={self.start:.6g}, end={self.end:.6g}, segments={len(self.edges)})"

    @property
    def span(self) -> float:
        return self.start - self.end

    def resolve_edges(self, ages: np.ndarray) -> np.ndarray:
        """
        Return the edge owning each age.

        Segments are half-open ``[end, start)``; the lineage's oldest boundary
        belongs to its oldest segment. Exactly one segment must match.
        """
        ages = np.asarray(ages, dtype=float)
        if ages.size == 0:
            return np.empty(0, dtype=np.int64)

        at = ages[:, None]
        inside = (self.ends[None, :] <= at) & (at < self.starts[None, :])
        inside |= (at == self.starts[None, :]) & (self.starts[None, :] == self.start)
        matches = inside.sum(axis=1)

        bad = np.flatnonzero(matches != 1)
        if bad.size:
            first = bad[0]
            raise EdgeResolutionError.for_age(
                self.sp, float(ages[first]), int(matches[first]), lifespan=(self.end, self.start)
            )
        return self.edges[inside.argmax(axis=1)]


class Taxonomy:
    """Read-only table of ``(sp, edge, start, end)`` taxonomic segments."""

    COLUMNS = ("sp", "edge", "start", "end")

    def __init__(self, frame: pd.DataFrame):
        missing = [col for col in self.COLUMNS if col not in frame.columns]
        if missing:
            raise ValidationError(f"Taxonomy is missing columns: {missing}")
        if frame.empty:
            raise ValidationError("Taxonomy must contain at least one segment")

        table = frame.loc[:, list(self.COLUMNS)].reset_index(drop=True)
        if table[["sp", "edge"]].isna().any().any():
            raise ValidationError("Taxonomy species and edge ids cannot be missing")
        try:
            table = table.astype(
                {"sp": np.int64, "edge": np.int64, "start": float, "end": float}
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid taxonomy values: {e}") from e
        if not np.isfinite(table[["start", "end"]].to_numpy()).all():
            raise ValidationError("Taxonomy segment ages must be finite")
        if (table["start"] < table["end"]).any():
            raise ValidationError("Taxonomy segments must have start >= end")

        self._frame = table
        self._lineages: Optional[List[Lineage]] = None

    @classmethod
    def from_records(cls, records: Iterable[Tuple[int, int, float, float]]) -> "Taxonomy":
        return cls(pd.DataFrame(list(records), columns=list(cls.COLUMNS)))

    @classmethod
    def from_tree(cls, tree: PhyloTree, root_edge: bool = True) -> "Taxonomy":
        """
        Symmetric taxonomy: every edge is a species of its own.

        The species and edge ids are the id of the edge's child node. When the
        tree has a root edge and ``root_edge`` is True, the root edge is listed
        first as species ``tree.root_id``.
        """
        if not tree.has_edge_lengths():
            raise ValidationError("tree must have edge lengths")

        ages = tree.node_ages()
        records: List[Tuple[int, int, float, float]] = []
        if root_edge and tree.root_edge is not None:
            root_age = ages[tree.root_id]
            records.append((tree.root_id, tree.root_id, root_age + tree.root_edge, root_age))
        for parent_id, child_id in tree.edges:
            records.append((child_id, child_id, ages[parent_id], ages[child_id]))

        logger.debug(f"Built symmetric taxonomy with {len(records)} species")
        return cls.from_records(records)

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"Taxonomy(segments={len(self)}, species={len(self.species)})"

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame.copy()

    @property
    def species(self) -> List[int]:
        """Unique species ids in order of first appearance."""
        return [int(sp) for sp in pd.unique(self._frame["sp"])]

    @property
    def edges(self) -> np.ndarray:
        return pd.unique(self._frame["edge"]).astype(np.int64)

    def lineages(self) -> List[Lineage]:
        if self._lineages is None:
            # sort=False keeps species in order of first appearance
            self._lineages = [
                Lineage(
                    int(sp),
                    rows["edge"].to_numpy(dtype=np.int64),
                    rows["start"].to_numpy(dtype=float),
                    rows["end"].to_numpy(dtype=float),
                )
                for sp, rows in self._frame.groupby("sp", sort=False)
            ]
        return self._lineages

    def lineage(self, sp: int) -> Lineage:
        for lineage in self.lineages():
            if lineage.sp == sp:
                return lineage
        raise ValidationError(f"Unknown species {sp}")

    def segments(self, sp: int) -> List[Segment]:
        lineage = self.lineage(sp)
        return [
            Segment(int(edge), float(start), float(end))
            for edge, start, end in zip(lineage.edges, lineage.starts, lineage.ends)
        ]

    def lifespan(self, sp: int) -> Tuple[float, float]:
        """``(end, start)`` of a species, youngest age first."""
        lineage = self.lineage(sp)
        return lineage.end, lineage.start

    def segment_at(self, sp: int, age: float) -> int:
        """Edge of species ``sp`` alive at ``age``."""
        return int(self.lineage(sp).resolve_edges(np.array([age]))[0])
