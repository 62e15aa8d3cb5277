"""
Engine status, exploration state and the per-session context.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from ..core.graph import GraphStore
from ..core.records import PostRecord, ProfileRecord
from ..core.types import Representation
from ..semantic.index import SimilarityIndex
from ..semantic.strategy import RepresentationStrategy

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    """Lifecycle of an exploration engine."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EXPLORING = "exploring"
    ERROR = "error"


@dataclass
class ExplorationState:
    """Mutable exploration progress.

    Attributes:
        visited: Ids already shown as a seed or neighbour; only ever grows
        selected: Id the next step explores from
        generation: Number of exploration steps started so far
        status: Current lifecycle status
        last_error: User-facing message of the last failure
    """
    visited: Set[str] = field(default_factory=set)
    selected: Optional[str] = None
    generation: int = 0
    status: EngineStatus = EngineStatus.IDLE
    last_error: Optional[str] = None

    def mark_visited(self, ids: Iterable[str]) -> None:
        self.visited.update(ids)

    def fail(self, message: str) -> None:
        self.status = EngineStatus.ERROR
        self.last_error = message


class ExplorationSession:
    """
    Caches and stores that live for one exploration session.

    Holds the representation of every known post (by id, and by text so
    identical texts are represented once), fetched posts and profiles, the
    graph store and the live similarity index.
    """

    def __init__(self, strategy: RepresentationStrategy,
                 graph: Optional[GraphStore] = None):
        self.strategy = strategy
        self.graph = graph if graph is not None else GraphStore()
        self.index: Optional[SimilarityIndex] = None
        self.representations: Dict[str, Representation] = {}
        self.text_representations: Dict[str, Representation] = {}
        self.posts: Dict[str, PostRecord] = {}
        self.profiles: Dict[str, ProfileRecord] = {}

    async def represent(self, text: str) -> Representation:
        """Representation of ``text``, computed once per distinct text."""
        cached = self.text_representations.get(text)
        if cached is None:
            cached = await self.strategy.represent(text)
            self.text_representations[text] = cached
        return cached

    def cache_representation(self, node_id: str, rep: Representation) -> bool:
        """Remember ``rep`` for ``node_id`` unless one is already cached."""
        if node_id in self.representations:
            return False
        self.representations[node_id] = rep
        return True

    def close(self) -> None:
        logger.debug("Closing session with %d cached representations",
                     len(self.representations))
        self.representations.clear()
        self.text_representations.clear()
        self.posts.clear()
        self.profiles.clear()
        self.index = None
