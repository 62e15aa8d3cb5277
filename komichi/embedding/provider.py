"""
Embedding providers.

The exploration core only relies on the ``EmbeddingProvider`` protocol: an
async ``embed(text)`` returning a 1-D float32 vector, deterministic for a
fixed model and input. ``SentenceTransformerProvider`` is the default
implementation; its model is loaded lazily on first use.
"""

import asyncio
import logging
import threading
from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

from ..core.errors import RepresentationError
from ..core.types import Vector

DEFAULT_MODEL = "intfloat/multilingual-e5-small"
# e5 models expect a role prefix on every input
DEFAULT_PREFIX = "passage: "

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a dense vector."""

    async def embed(self, text: str) -> Vector:
        ...


class SentenceTransformerProvider:
    """Embedding provider backed by a ``sentence-transformers`` model."""

    def __init__(self,
                 model_name: str = DEFAULT_MODEL,
                 prefix: str = DEFAULT_PREFIX,
                 device: Optional[str] = None):
        self.model_name = model_name
        self.prefix = prefix
        self.device = device
        self._model: Optional[Any] = None
        self._load_lock = threading.Lock()

    @property
    def model(self) -> Any:
        """Lazy initialization of the sentence-transformers model."""
        with self._load_lock:
            if self._model is None:
                try:
                    from sentence_transformers import SentenceTransformer
                except ImportError:
                    raise ImportError(
                        "sentence-transformers is not installed. "
                        "Install with: pip install 'komichi[embeddings]'"
                    )
                logger.info("Loading embedding model %s", self.model_name)
                self._model = SentenceTransformer(self.model_name, device=self.device)
        return self._model

    def _encode(self, text: str) -> Vector:
        output = self.model.encode(
            self.prefix + text,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return np.asarray(output, dtype=np.float32).reshape(-1)

    async def embed(self, text: str) -> Vector:
        """Embed ``text`` off the event loop."""
        if not text:
            raise RepresentationError("Cannot embed empty text", text=text)
        return await asyncio.to_thread(self._encode, text)
