"""
Representation strategies.

A session picks exactly one strategy at construction time. The strategy
decides how text becomes a representation, how two representations are
compared, and which index type stores them, so the exploration engine never
branches on the representation kind itself.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from ..core.errors import RepresentationError
from ..core.types import Representation, RepresentationKind
from .fingerprint import DEFAULT_NGRAM, fingerprint, hamming_similarity
from .index import SimilarityIndex, create_index
from .vectors import as_vector, cosine_similarity

if TYPE_CHECKING:
    from ..config import ExplorationSettings
    from ..embedding.provider import EmbeddingProvider

logger = logging.getLogger(__name__)


class RepresentationStrategy(ABC):
    """Text representation plus matching similarity and index."""

    kind: RepresentationKind

    @abstractmethod
    async def represent(self, text: str) -> Representation:
        """
        Representation of ``text``.

        Raises:
            RepresentationError: if this text cannot be represented
        """

    @abstractmethod
    def similarity(self, a: Representation, b: Representation) -> float:
        """Similarity in which larger means closer."""

    def new_index(self) -> SimilarityIndex:
        """Empty index for representations of this strategy."""
        return create_index(self.kind)


class EmbeddingStrategy(RepresentationStrategy):
    """Dense vectors from an embedding provider, compared by cosine."""

    kind = RepresentationKind.VECTOR

    def __init__(self, provider: "EmbeddingProvider"):
        self.provider = provider

    async def represent(self, text: str) -> Representation:
        if not text:
            raise RepresentationError("Cannot embed empty text", text=text)
        try:
            return as_vector(await self.provider.embed(text))
        except ValueError as e:
            raise RepresentationError(f"Embedding provider returned an invalid vector: {e}",
                                      text=text) from e

    def similarity(self, a: Representation, b: Representation) -> float:
        return cosine_similarity(a, b)


class FingerprintStrategy(RepresentationStrategy):
    """SimHash fingerprints, compared by Hamming similarity."""

    kind = RepresentationKind.FINGERPRINT

    def __init__(self, ngram: int = DEFAULT_NGRAM):
        if ngram <= 0:
            raise ValueError(f"ngram must be positive, got {ngram}")
        self.ngram = ngram

    async def represent(self, text: str) -> Representation:
        if len(text) < self.ngram:
            raise RepresentationError(
                f"Text shorter than the {self.ngram}-character window", text=text
            )
        return fingerprint(text, self.ngram)

    def similarity(self, a: Representation, b: Representation) -> float:
        return hamming_similarity(a, b)


def create_strategy(settings: "ExplorationSettings",
                    provider: Optional["EmbeddingProvider"] = None) -> RepresentationStrategy:
    """
    Build the strategy named by ``settings.strategy``.

    For ``"embedding"`` a ``SentenceTransformerProvider`` is created from the
    settings when no ``provider`` is passed.
    """
    if settings.strategy == "fingerprint":
        logger.debug("Using fingerprint strategy (ngram=%d)", settings.ngram)
        return FingerprintStrategy(settings.ngram)

    if settings.strategy == "embedding":
        if provider is None:
            from ..embedding.provider import SentenceTransformerProvider
            provider = SentenceTransformerProvider(
                model_name=settings.embedding_model,
                prefix=settings.embedding_prefix,
                device=settings.embedding_device,
            )
        logger.debug("Using embedding strategy (%s)", type(provider).__name__)
        return EmbeddingStrategy(provider)

    raise ValueError(f"Unknown strategy: {settings.strategy!r}")
