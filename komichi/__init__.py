"""
komichi - explore Bluesky posts by content similarity.

Posts are represented either by dense embeddings or by SimHash fingerprints,
indexed for nearest-neighbour search and walked step by step into a graph of
similar posts. Steps from the local actor's own posts can be persisted as
``blue.maril.komichi.index`` records.
"""

__version__ = "0.1.0"

from .config import Config, ExplorationSettings, load_config
from .core.errors import (
    ExplorationError,
    FetchError,
    KomichiError,
)
from .core.graph import GraphStore
from .core.types import ContentNode, Edge, EdgeBatch, RepresentationKind
from .engine import ExplorationEngine, ExplorationSession, IndexGraphLoader
from .semantic import (
    EmbeddingStrategy,
    FingerprintStrategy,
    create_strategy,
    fingerprint,
    hamming_distance,
)

__all__ = [
    '__version__',
    'Config',
    'ExplorationSettings',
    'load_config',
    'ExplorationError',
    'FetchError',
    'KomichiError',
    'GraphStore',
    'ContentNode',
    'Edge',
    'EdgeBatch',
    'RepresentationKind',
    'ExplorationEngine',
    'ExplorationSession',
    'IndexGraphLoader',
    'EmbeddingStrategy',
    'FingerprintStrategy',
    'create_strategy',
    'fingerprint',
    'hamming_distance',
]
