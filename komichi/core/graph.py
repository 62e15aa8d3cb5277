"""
Append-only store of discovered edges and node metadata.

Edge batches are never rewritten: a second discovery from the same source
appends a new batch. Node metadata is first-write-wins.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .types import ContentNode, Edge, EdgeBatch

logger = logging.getLogger(__name__)


class GraphStore:
    """Edge batch accumulator plus metadata map keyed by resource id."""

    def __init__(self) -> None:
        self._batches: List[EdgeBatch] = []
        self._metadata: Dict[str, ContentNode] = {}

    # ----------------------------
    # Batches
    # ----------------------------
    def add_batch(self, batch: EdgeBatch) -> None:
        """Append ``batch``; earlier batches are left untouched."""
        self._batches.append(batch)
        logger.debug("Appended batch from %s with %d targets", batch.source, len(batch))

    def extend(self, batches: List[EdgeBatch]) -> None:
        for batch in batches:
            self.add_batch(batch)

    @property
    def batches(self) -> Tuple[EdgeBatch, ...]:
        return tuple(self._batches)

    def edges(self) -> Iterator[Edge]:
        """
        Yield edges deduplicated on ``(source, target)``.

        When several batches contain the same pair, the first one seen wins
        and keeps its rank.
        """
        seen: Set[Tuple[str, str]] = set()
        for batch in self._batches:
            for edge in batch.edges():
                key = (edge.source, edge.target)
                if key in seen:
                    continue
                seen.add(key)
                yield edge

    def nodes(self) -> List[str]:
        """All ids referenced by batches, in first-seen order."""
        ordered: Dict[str, None] = {}
        for batch in self._batches:
            ordered.setdefault(batch.source, None)
            for target in batch.targets:
                ordered.setdefault(target, None)
        return list(ordered)

    # ----------------------------
    # Metadata
    # ----------------------------
    def set_metadata(self, node: ContentNode) -> bool:
        """Store ``node`` unless metadata for its id already exists."""
        if node.id in self._metadata:
            return False
        self._metadata[node.id] = node
        return True

    def get_metadata(self, node_id: str) -> Optional[ContentNode]:
        return self._metadata.get(node_id)

    def has_metadata(self, node_id: str) -> bool:
        return node_id in self._metadata

    def __len__(self) -> int:
        return len(self._batches)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable snapshot of batches, edges and known metadata."""
        return {
            "batches": [
                {"from": batch.source, "to": list(batch.targets)}
                for batch in self._batches
            ],
            "edges": [
                {"from": edge.source, "to": edge.target, "rank": edge.rank}
                for edge in self.edges()
            ],
            "nodes": {
                node_id: self._metadata[node_id].to_dict()
                for node_id in self.nodes()
                if node_id in self._metadata
            },
        }
