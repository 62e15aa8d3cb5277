"""
Nearest-neighbour indexes over post representations.

Two implementations share the ``SimilarityIndex`` interface:

- ``VectorIndex``: exact cosine search over a numpy matrix that is rebuilt
  lazily after inserts.
- ``FingerprintIndex``: Hamming search over a BK-tree.

Both return ``(id, distance)`` pairs ordered by ascending distance with ties
broken by insertion order, and both may return the query's own id.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.distance import cdist

from ..core.errors import DimensionMismatch, IndexStateError, LengthMismatch
from ..core.types import Fingerprint, Representation, RepresentationKind, Vector
from .bktree import BKTree
from .fingerprint import hamming_distance

Neighbor = Tuple[str, float]


class SimilarityIndex(ABC):
    """Searchable set of ``(id, representation)`` entries of one kind."""

    kind: RepresentationKind

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._ids: Dict[str, int] = {}
        self._dimension: Optional[int] = None
        self._built = False

    @property
    def dimension(self) -> Optional[int]:
        """Representation length, fixed by the first entry."""
        return self._dimension

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def ids(self) -> List[str]:
        """Indexed ids in insertion order."""
        return list(self._ids)

    def build(self, entries: Iterable[Tuple[str, Representation]]) -> None:
        """
        Bulk-load ``entries``.

        Raises:
            IndexStateError: if the index was already built
            ValueError: if an id appears twice in ``entries``
        """
        if self._built:
            raise IndexStateError("Index already built; use insert() for further entries")

        entries = list(entries)
        seen = set()
        expected = self._dimension
        for item_id, rep in entries:
            if item_id in seen:
                raise ValueError(f"Duplicate id in build(): {item_id}")
            seen.add(item_id)
            if expected is None:
                expected = len(rep)
            elif len(rep) != expected:
                raise self._mismatch(expected, len(rep))

        for item_id, rep in entries:
            self._add(item_id, rep)
        self._built = True
        self.logger.debug("Built %s index with %d entries", self.kind.value, len(entries))

    def insert(self, item_id: str, rep: Representation) -> bool:
        """
        Add one entry to a live index.

        Returns False (and changes nothing) if ``item_id`` is already indexed.
        """
        if item_id in self._ids:
            self.logger.debug("Skipping insert of already indexed id %s", item_id)
            return False
        self._add(item_id, rep)
        self._built = True
        return True

    def query(self, rep: Representation, k: int) -> List[Neighbor]:
        """Up to ``k`` nearest ids with their distances."""
        if k <= 0 or not self._ids:
            return []
        self._check_length(len(rep))
        return self._query(rep, k)

    def _add(self, item_id: str, rep: Representation) -> None:
        self._check_length(len(rep))
        if self._dimension is None:
            self._dimension = len(rep)
        self._ids[item_id] = len(self._ids)
        self._store(item_id, rep)

    def _check_length(self, length: int) -> None:
        if self._dimension is not None and length != self._dimension:
            raise self._mismatch(self._dimension, length)

    @abstractmethod
    def _mismatch(self, expected: int, actual: int) -> Exception:
        """Error raised for a representation of the wrong length."""

    @abstractmethod
    def _store(self, item_id: str, rep: Representation) -> None:
        """Persist one validated entry."""

    @abstractmethod
    def _query(self, rep: Representation, k: int) -> List[Neighbor]:
        """Search with a validated query."""


class VectorIndex(SimilarityIndex):
    """Exact cosine-distance index over dense vectors."""

    kind = RepresentationKind.VECTOR

    def __init__(self) -> None:
        super().__init__()
        self._vectors: List[Vector] = []
        self._order: List[str] = []
        self._matrix: Optional[NDArray[np.float32]] = None
        self._matrix_valid = False

    def _mismatch(self, expected: int, actual: int) -> Exception:
        return DimensionMismatch(expected, actual)

    def _store(self, item_id: str, rep: Representation) -> None:
        self._vectors.append(np.asarray(rep, dtype=np.float32))
        self._order.append(item_id)
        self._matrix_valid = False

    def _ensure_matrix(self) -> NDArray[np.float32]:
        if not self._matrix_valid or self._matrix is None:
            self._matrix = np.vstack(self._vectors)
            self._matrix_valid = True
        return self._matrix

    def _query(self, rep: Representation, k: int) -> List[Neighbor]:
        matrix = self._ensure_matrix()
        query = np.asarray(rep, dtype=np.float32).reshape(1, -1)
        distances = cdist(query, matrix, metric="cosine")[0]
        # zero-norm rows have no direction: treat as orthogonal
        distances = np.nan_to_num(distances, nan=1.0)

        order = np.argsort(distances, kind="stable")[:k]
        return [(self._order[i], float(distances[i])) for i in order]


class FingerprintIndex(SimilarityIndex):
    """Hamming-distance index over bit fingerprints."""

    kind = RepresentationKind.FINGERPRINT

    def __init__(self) -> None:
        super().__init__()
        self._tree: BKTree[str, Fingerprint] = BKTree(hamming_distance)

    def _mismatch(self, expected: int, actual: int) -> Exception:
        return LengthMismatch(expected, actual)

    def _store(self, item_id: str, rep: Representation) -> None:
        self._tree.add(item_id, np.asarray(rep, dtype=np.uint8))

    def _query(self, rep: Representation, k: int) -> List[Neighbor]:
        hits = self._tree.nearest(np.asarray(rep, dtype=np.uint8), k)
        return [(item_id, float(d)) for item_id, d in hits]


def create_index(kind: RepresentationKind) -> SimilarityIndex:
    """Empty index matching ``kind``."""
    if kind is RepresentationKind.VECTOR:
        return VectorIndex()
    if kind is RepresentationKind.FINGERPRINT:
        return FingerprintIndex()
    raise ValueError(f"Unsupported representation kind: {kind}")
