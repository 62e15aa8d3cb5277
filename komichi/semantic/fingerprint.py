# komichi/semantic/fingerprint.py
"""
SimHash-style bit fingerprints for lexical similarity.

Each character n-gram of a text is hashed with MD5; the 128 digest bits are
mapped to +1/-1 weights and summed over all n-grams. A fingerprint bit is set
where the sum is positive. Texts sharing more n-grams end up with a smaller
Hamming distance. This is an approximate proxy, not an exact similarity.
"""
from __future__ import annotations

import hashlib
from typing import Iterable, List, Sequence

import numpy as np
from numpy.typing import NDArray

from ..core.errors import LengthMismatch
from ..core.types import Fingerprint

DEFAULT_NGRAM = 3
DIGEST_BITS = hashlib.md5().digest_size * 8  # 128

Weights = NDArray[np.int8]


def _windows(text: str, n: int) -> Iterable[str]:
    for i in range(len(text) - n + 1):
        yield text[i:i + n]


def _digest_weights(window: str) -> Weights:
    digest = hashlib.md5(window.encode("utf-8")).digest()
    # unpackbits is MSB-first per byte
    bits = np.unpackbits(np.frombuffer(digest, dtype=np.uint8))
    return (bits.astype(np.int8) * 2 - 1).astype(np.int8)


def compute_ngram_weights(text: str, n: int = DEFAULT_NGRAM) -> List[Weights]:
    """
    Compute one +1/-1 weight vector per character n-gram of ``text``.

    Returns an empty list when ``text`` is shorter than ``n``.
    """
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    return [_digest_weights(window) for window in _windows(text, n)]


def aggregate(weights: Sequence[Weights]) -> Fingerprint:
    """
    Collapse weight vectors into a fingerprint by majority sign.

    Raises:
        ValueError: if ``weights`` is empty
    """
    if len(weights) == 0:
        raise ValueError("Cannot aggregate an empty weight sequence")
    totals = np.sum(np.stack(weights).astype(np.int64), axis=0)
    return (totals > 0).astype(np.uint8)


def fingerprint(text: str, n: int = DEFAULT_NGRAM) -> Fingerprint:
    """Fingerprint a single text. Raises ValueError if ``text`` is shorter than ``n``."""
    return aggregate(compute_ngram_weights(text, n))


def fingerprint_corpus(texts: Iterable[str], n: int = DEFAULT_NGRAM) -> Fingerprint:
    """
    Fingerprint a whole corpus (e.g. all posts of one actor) at once.

    The n-gram weights of every text are pooled before aggregation, so long
    texts weigh more than short ones.
    """
    pooled: List[Weights] = []
    for text in texts:
        pooled.extend(compute_ngram_weights(text, n))
    return aggregate(pooled)


def hamming_distance(a: Fingerprint, b: Fingerprint) -> int:
    """
    Number of positions where ``a`` and ``b`` differ.

    Raises:
        LengthMismatch: if the fingerprints have different bit lengths
    """
    if len(a) != len(b):
        raise LengthMismatch(len(a), len(b))
    return int(np.count_nonzero(np.asarray(a) != np.asarray(b)))


def hamming_similarity(a: Fingerprint, b: Fingerprint) -> float:
    """Hamming distance mapped to [0, 1], 1 meaning identical."""
    if len(a) == 0:
        return 1.0 if len(b) == 0 else 0.0
    return 1.0 - hamming_distance(a, b) / len(a)


def to_bitstring(fp: Fingerprint) -> str:
    return "".join("1" if bit else "0" for bit in fp)
