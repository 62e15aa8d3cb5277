"""
Keyword extraction by representation similarity.

Tokens are ranked by how close their own representation is to the
representation of the whole text. The top tokens serve as a short node label
and as the search query for candidate expansion.
"""

import logging
import re
from typing import TYPE_CHECKING, List, Tuple

from ..core.errors import RepresentationError
from ..core.types import Representation

if TYPE_CHECKING:
    from ..semantic.strategy import RepresentationStrategy

logger = logging.getLogger(__name__)

FALLBACK_LENGTH = 50
MIN_TOKEN_LENGTH = 2

# Kana, CJK ideographs and Hangul carry no spaces between words
_CJK = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\uac00-\ud7af"
_TOKEN_PATTERN = re.compile(f"[{_CJK}]+|[^\\W{_CJK}]+")
_CJK_RUN = re.compile(f"^[{_CJK}]+$")


def tokenize(text: str) -> List[str]:
    """
    Split ``text`` into unique word-like tokens of at least two characters.

    Runs of CJK characters are cut into overlapping bigrams.
    """
    tokens: List[str] = []
    seen = set()
    for match in _TOKEN_PATTERN.finditer(text):
        segment = match.group(0)
        if _CJK_RUN.match(segment) and len(segment) > MIN_TOKEN_LENGTH:
            pieces = [segment[i:i + 2] for i in range(len(segment) - 1)]
        else:
            pieces = [segment]
        for piece in pieces:
            if len(piece) >= MIN_TOKEN_LENGTH and piece not in seen:
                seen.add(piece)
                tokens.append(piece)
    return tokens


async def extract_keywords(text: str,
                           doc_rep: Representation,
                           strategy: "RepresentationStrategy",
                           top_k: int = 1) -> str:
    """
    Return the ``top_k`` tokens of ``text`` closest to ``doc_rep``, space separated.

    Falls back to the first 50 characters of ``text`` when no token can be
    scored. Tokens the strategy cannot represent are skipped.
    """
    tokens = tokenize(text)
    scored: List[Tuple[float, str]] = []
    for token in tokens:
        try:
            rep = await strategy.represent(token)
        except RepresentationError:
            logger.debug("Skipping unrepresentable token %r", token)
            continue
        scored.append((strategy.similarity(rep, doc_rep), token))

    if not scored:
        return text[:FALLBACK_LENGTH]

    # sorted() is stable, so equal scores keep text order
    ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)
    return " ".join(token for _, token in ranked[:max(top_k, 1)])
