"""Core data model, identifiers, record validation and graph storage."""

from .errors import (
    KomichiError,
    FetchError,
    DimensionMismatch,
    LengthMismatch,
    InvalidIdentifierError,
    InvalidRecordError,
    RepresentationError,
    WriteError,
    XrpcError,
    ExplorationError,
    IndexStateError,
    is_per_item_error,
)
from .graph import GraphStore
from .types import ContentNode, Edge, EdgeBatch, PersistedIndexEntry, RepresentationKind

__all__ = [
    'KomichiError',
    'FetchError',
    'DimensionMismatch',
    'LengthMismatch',
    'InvalidIdentifierError',
    'InvalidRecordError',
    'RepresentationError',
    'WriteError',
    'XrpcError',
    'ExplorationError',
    'IndexStateError',
    'is_per_item_error',
    'GraphStore',
    'ContentNode',
    'Edge',
    'EdgeBatch',
    'PersistedIndexEntry',
    'RepresentationKind',
]
