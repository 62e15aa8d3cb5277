"""Exploration engine, its session state and the persisted index loader."""

from .exploration import ExplorationEngine, node_from_post
from .index_loader import IndexGraphLoader
from .state import EngineStatus, ExplorationSession, ExplorationState

__all__ = [
    'ExplorationEngine',
    'node_from_post',
    'IndexGraphLoader',
    'EngineStatus',
    'ExplorationSession',
    'ExplorationState',
]
