"""Representations of post text and nearest-neighbour search over them."""

from .fingerprint import (
    aggregate,
    compute_ngram_weights,
    fingerprint,
    fingerprint_corpus,
    hamming_distance,
    hamming_similarity,
)
from .index import FingerprintIndex, SimilarityIndex, VectorIndex, create_index
from .strategy import (
    EmbeddingStrategy,
    FingerprintStrategy,
    RepresentationStrategy,
    create_strategy,
)
from .vectors import cosine_distance, cosine_similarity

__all__ = [
    'aggregate',
    'compute_ngram_weights',
    'fingerprint',
    'fingerprint_corpus',
    'hamming_distance',
    'hamming_similarity',
    'FingerprintIndex',
    'SimilarityIndex',
    'VectorIndex',
    'create_index',
    'EmbeddingStrategy',
    'FingerprintStrategy',
    'RepresentationStrategy',
    'create_strategy',
    'cosine_distance',
    'cosine_similarity',
]
