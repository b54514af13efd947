"""
Fossil occurrence collections.

A :class:`Fossils` value is an ordered table of occurrences with columns
``sp`` (species id, missing when species identity is unknown), ``edge``
(id of the node subtending the edge the fossil lies on), ``hmin`` and
``hmax`` (youngest and oldest possible age). Values are never modified in
place: combining or subsetting always returns a new collection.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from fossilsampler.exceptions import MismatchError, ValidationError
from fossilsampler.taxonomy import Taxonomy

logger = logging.getLogger(__name__)


class Fossils:
    COLUMNS = ("sp", "edge", "hmin", "hmax")

    def __init__(self, frame: Optional[pd.DataFrame] = None, from_taxonomy: bool = True):
        if frame is None:
            frame = pd.DataFrame({col: [] for col in self.COLUMNS})
        missing = [col for col in self.COLUMNS if col not in frame.columns]
        if missing:
            raise ValidationError(f"Fossils are missing columns: {missing}")

        table = frame.loc[:, list(self.COLUMNS)].reset_index(drop=True)
        try:
            table = table.astype(
                {"sp": "Int64", "edge": "Int64", "hmin": float, "hmax": float}
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid fossil values: {e}") from e
        if (table["hmin"] > table["hmax"]).any():
            raise ValidationError("Fossil ages must satisfy hmin <= hmax")

        self._frame = table
        self.from_taxonomy = bool(from_taxonomy)

    # ------------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------------
    @classmethod
    def from_arrays(
        cls,
        sp: Sequence[float],
        edge: Sequence[float],
        hmin: Sequence[float],
        hmax: Sequence[float],
        from_taxonomy: bool = True,
    ) -> "Fossils":
        """Build a collection from column arrays; NaN species mean unknown."""
        frame = pd.DataFrame(
            {
                "sp": pd.array(np.asarray(sp, dtype=float), dtype="Int64"),
                "edge": pd.array(np.asarray(edge, dtype=float), dtype="Int64"),
                "hmin": np.asarray(hmin, dtype=float),
                "hmax": np.asarray(hmax, dtype=float),
            }
        )
        return cls(frame, from_taxonomy=from_taxonomy)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Tuple[Optional[int], Optional[int], float, float]],
        from_taxonomy: bool = True,
    ) -> "Fossils":
        rows = [
            tuple(np.nan if value is None else value for value in record)
            for record in records
        ]
        if not rows:
            return cls(from_taxonomy=from_taxonomy)
        sp, edge, hmin, hmax = zip(*rows)
        return cls.from_arrays(sp, edge, hmin, hmax, from_taxonomy=from_taxonomy)

    # ------------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"Fossils(n={len(self)}, from_taxonomy={self.from_taxonomy})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fossils):
            return NotImplemented
        return self.from_taxonomy == other.from_taxonomy and self._frame.equals(other._frame)

    __hash__ = None  # type: ignore[assignment]

    @property
    def sp(self) -> np.ndarray:
        return self._frame["sp"].to_numpy(dtype=float, na_value=np.nan)

    @property
    def edge(self) -> np.ndarray:
        return self._frame["edge"].to_numpy(dtype=float, na_value=np.nan)

    @property
    def hmin(self) -> np.ndarray:
        return self._frame["hmin"].to_numpy(dtype=float)

    @property
    def hmax(self) -> np.ndarray:
        return self._frame["hmax"].to_numpy(dtype=float)

    def to_frame(self) -> pd.DataFrame:
        """Copy of the table; ``attrs["from_taxonomy"]`` carries the marker."""
        frame = self._frame.copy()
        frame.attrs["from_taxonomy"] = self.from_taxonomy
        return frame

    # ------------------------------------------------------------------------
    # Combination & selection
    # ------------------------------------------------------------------------
    def concat(self, *others: "Fossils", from_taxonomy: Optional[bool] = None) -> "Fossils":
        """
        New collection with the rows of ``self`` followed by those of ``others``.

        The species marker defaults to True only if every part is
        taxonomy-derived.
        """
        parts = (self, *others)
        if from_taxonomy is None:
            from_taxonomy = all(part.from_taxonomy for part in parts)
        return Fossils.from_arrays(
            np.concatenate([part.sp for part in parts]),
            np.concatenate([part.edge for part in parts]),
            np.concatenate([part.hmin for part in parts]),
            np.concatenate([part.hmax for part in parts]),
            from_taxonomy=from_taxonomy,
        )

    def take(self, indices: Sequence[int]) -> "Fossils":
        """Rows at the given positions, in the given order."""
        indices = np.asarray(indices, dtype=np.int64)
        return Fossils(self._frame.iloc[indices], from_taxonomy=self.from_taxonomy)

    def filter(self, keep: Sequence[bool]) -> "Fossils":
        keep = np.asarray(keep, dtype=bool)
        if keep.shape != (len(self),):
            raise ValidationError(f"Mask of length {keep.size} for {len(self)} fossils")
        return Fossils(self._frame[keep], from_taxonomy=self.from_taxonomy)

    def check_edges(self, taxonomy: Taxonomy) -> None:
        """Raise MismatchError unless every known edge is a taxonomy edge."""
        edges = self.edge
        edges = edges[~np.isnan(edges)].astype(np.int64)
        unknown = np.setdiff1d(edges, taxonomy.edges)
        if unknown.size:
            raise MismatchError(
                f"Mismatch between fossils and taxonomy objects: edges {unknown.tolist()} "
                "are not part of the taxonomy"
            )
