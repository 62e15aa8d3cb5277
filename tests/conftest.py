"""Shared fixtures: in-memory stand-ins for the network collaborators."""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from komichi.client.writer import Credentials
from komichi.core.errors import FetchError, WriteError
from komichi.core.records import FeedPost, PostRecord

ME = "did:plc:localactor"
OTHER = "did:plc:someoneelse"
OWN_TID = "3jzfcijpj2z2a"


def make_post(uri: str, text: str, did: Optional[str] = None) -> FeedPost:
    if did is None:
        did = uri[len("at://"):].split("/")[0]
    return FeedPost(
        uri=uri,
        author_did=did,
        author_handle="someone.bsky.social",
        author_name="Someone",
        avatar_url="https://cdn.example/avatar.jpg",
        record=PostRecord(text=text, created_at="2024-05-01T12:00:00.000Z"),
    )


class FakeFetcher:
    """Feed source backed by dictionaries; records every call."""

    def __init__(self):
        self.feeds: Dict[str, List[FeedPost]] = {}
        self.timeline: List[FeedPost] = []
        self.search_results: List[FeedPost] = []
        self.fail_feed = False
        self.fail_search = False
        self.search_gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []

    async def get_author_feed(self, actor: str, limit: int = 50) -> List[FeedPost]:
        self.calls.append(f"feed:{actor}")
        if self.fail_feed:
            raise FetchError("feed unavailable", operation="app.bsky.feed.getAuthorFeed",
                             status=502)
        return list(self.feeds.get(actor, []))

    async def get_timeline(self, limit: int = 50) -> List[FeedPost]:
        self.calls.append("timeline")
        return list(self.timeline)

    async def search_posts(self, query: str, limit: int = 25) -> List[FeedPost]:
        self.calls.append(f"search:{query}")
        gate, self.search_gate = self.search_gate, None
        if gate is not None:
            await gate.wait()
        if self.fail_search:
            raise FetchError("search unavailable", operation="app.bsky.feed.searchPosts")
        return list(self.search_results)

    async def close(self) -> None:
        self.calls.append("close")


class FakeWriter:
    """Persistence writer that keeps written records in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.writes: List[tuple] = []

    async def write(self, key: str, subjects: Sequence[str],
                    credentials: Credentials) -> None:
        if self.fail:
            raise WriteError("repo rejected the record", key=key, status=400)
        self.writes.append((key, list(subjects), credentials))


class FakeProvider:
    """Embedding provider returning fixed vectors per text."""

    def __init__(self, vectors: Dict[str, Sequence[float]],
                 default: Sequence[float] = (0.5, 0.5)):
        self.vectors = vectors
        self.default = default
        self.calls: List[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        return np.asarray(self.vectors.get(text, self.default), dtype=np.float32)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def writer():
    return FakeWriter()


@pytest.fixture
def writer_factory():
    return FakeWriter


@pytest.fixture(autouse=True)
def reset_komichi_logger():
    """Undo handlers installed by setup_logging during a test."""
    yield
    logger = logging.getLogger("komichi")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def credentials():
    return Credentials(did=ME, access_token="secret-token", pds="https://pds.example")


@pytest.fixture
def post_factory():
    return make_post


@pytest.fixture
def provider_factory():
    return FakeProvider
