"""Shared data structures for the exploration core.

Representations are plain numpy arrays: ``Vector`` is a 1-D float32 array and
``Fingerprint`` is a 1-D uint8 array holding 0/1 bits. Which one is active is
decided once per session by the representation strategy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

Vector = NDArray[np.float32]
Fingerprint = NDArray[np.uint8]
Representation = NDArray[Any]


class RepresentationKind(Enum):
    """Tag of the representation active in a session."""
    VECTOR = "vector"
    FINGERPRINT = "fingerprint"


@dataclass(frozen=True)
class ContentNode:
    """Metadata for one post in the graph.

    Attributes:
        id: Resource id (``at://`` uri) of the post
        author_id: DID of the author
        text: Post text
        created_at: Creation timestamp as sent by the server (ISO-8601)
        avatar_url: Author avatar URL, empty when unknown
        author_name: Author display name, empty when unknown
        keywords: Short label extracted from the text, if computed
    """
    id: str
    author_id: str
    text: str
    created_at: str
    avatar_url: str = ""
    author_name: str = ""
    keywords: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "text": self.text,
            "created_at": self.created_at,
            "avatar_url": self.avatar_url,
            "author_name": self.author_name,
            "keywords": self.keywords,
        }


@dataclass(frozen=True)
class Edge:
    """Directed edge discovered by an exploration step."""
    source: str
    target: str
    rank: int

    def __post_init__(self) -> None:
        if self.rank < 0:
            raise ValueError(f"rank must be >= 0, got {self.rank}")


@dataclass(frozen=True)
class EdgeBatch:
    """All neighbours found for ``source`` in one step, in rank order."""
    source: str
    targets: Tuple[str, ...] = field(default_factory=tuple)

    def edges(self) -> Iterator[Edge]:
        for rank, target in enumerate(self.targets):
            yield Edge(self.source, target, rank)

    def __len__(self) -> int:
        return len(self.targets)


@dataclass(frozen=True)
class PersistedIndexEntry:
    """Index record stored in the local actor's repository."""
    key: str
    subjects: Tuple[str, ...]
    created_at: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Record value in its ``blue.maril.komichi.index`` wire shape."""
        return {
            "$type": "blue.maril.komichi.index",
            "createdAt": self.created_at,
            "subjects": list(self.subjects),
        }
