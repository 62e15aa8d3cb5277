"""Embedding providers and representation-based keyword extraction."""

from .keywords import extract_keywords, tokenize
from .provider import EmbeddingProvider, SentenceTransformerProvider

__all__ = [
    'extract_keywords',
    'tokenize',
    'EmbeddingProvider',
    'SentenceTransformerProvider',
]
