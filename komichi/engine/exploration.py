"""
Similarity exploration over posts.

The engine fetches candidate posts, represents them with the session's
strategy, indexes them and then walks the index: every step records the
nearest unvisited neighbours of the selected post as an edge batch. Steps
starting from a post the local actor owns are also written back to the
actor's repository as index records.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, Set, Tuple

from ..core.errors import (
    ExplorationError,
    FetchError,
    KomichiError,
    WriteError,
    is_per_item_error,
    is_representation_mismatch,
)
from ..core.identifiers import filter_resource_ids, is_valid_tid, try_parse_resource_id
from ..core.records import FeedPost
from ..core.types import ContentNode, EdgeBatch, Representation
from ..embedding.keywords import extract_keywords
from ..semantic.strategy import RepresentationStrategy
from .state import EngineStatus, ExplorationSession, ExplorationState

if TYPE_CHECKING:
    from ..client.writer import Credentials, PersistenceWriter
    from ..config import ExplorationSettings

logger = logging.getLogger(__name__)


class PostSource(Protocol):
    """Feed and search access the engine needs."""

    async def get_author_feed(self, actor: str, limit: int = ...) -> List[FeedPost]:
        ...

    async def get_timeline(self, limit: int = ...) -> List[FeedPost]:
        ...

    async def search_posts(self, query: str, limit: int = ...) -> List[FeedPost]:
        ...


def node_from_post(post: FeedPost) -> ContentNode:
    return ContentNode(
        id=post.uri,
        author_id=post.author_did,
        text=post.text,
        created_at=post.record.created_at,
        avatar_url=post.avatar_url,
        author_name=post.author_name or post.author_handle,
    )


class ExplorationEngine:
    """
    Drives candidate loading and similarity exploration for one session.

    Args:
        fetcher: Source of feed, timeline and search results
        strategy: Representation strategy fixed for the whole session
        settings: Validated exploration settings
        writer: Persists index records; persistence is off without one
        credentials: Local actor session; enables the timeline and persistence
    """

    def __init__(self, fetcher: PostSource,
                 strategy: RepresentationStrategy,
                 settings: "ExplorationSettings",
                 writer: Optional["PersistenceWriter"] = None,
                 credentials: Optional["Credentials"] = None,
                 session: Optional[ExplorationSession] = None):
        self.fetcher = fetcher
        self.strategy = strategy
        self.settings = settings
        self.writer = writer
        self.credentials = credentials
        self.session = session or ExplorationSession(strategy)
        self.state = ExplorationState()
        self._pending_writes: Set["asyncio.Task[None]"] = set()

    @property
    def graph(self):
        return self.session.graph

    @property
    def status(self) -> EngineStatus:
        return self.state.status

    # ----------------------------
    # Loading
    # ----------------------------
    async def initialize(self, seed_actor: str) -> Optional[EdgeBatch]:
        """
        Load candidates around ``seed_actor``, build the index and run the
        first exploration step from the first candidate in the actor's feed.
        Timeline posts, when loaded, are only candidates.

        Raises:
            FetchError: no candidates could be fetched
            ExplorationError: representing the candidates or the first
                exploration step failed
        """
        self.state.status = EngineStatus.LOADING
        logger.info("Loading candidates for %s", seed_actor)
        try:
            candidates, feed_ids = await self._fetch_candidates(seed_actor)
            represented = await self._represent_all(candidates)
            if not represented:
                raise FetchError(f"No post of {seed_actor} could be represented",
                                 operation='initialize')

            index = self.strategy.new_index()
            index.build(self.session.representations.items())
            self.session.index = index
        except KomichiError as e:
            if is_representation_mismatch(e):
                logger.error("Representation length changed within the session: %s", e)
            self.state.fail(f"Could not load posts for {seed_actor}: {e.message}")
            raise
        except Exception as e:
            logger.error("Loading posts for %s failed", seed_actor, exc_info=True)
            message = f"Could not load posts for {seed_actor}"
            self.state.fail(message)
            raise ExplorationError(message, details={'actor': seed_actor}) from e

        # timeline posts are candidates only; the walk starts in the actor's feed
        seed = next((node_id for node_id in represented if node_id in feed_ids),
                    represented[0])
        self.state.selected = seed
        self.state.mark_visited([seed])
        self.state.status = EngineStatus.READY
        logger.info("Indexed %d posts; seed %s", len(self.session.index), seed)

        return await self.explore_node()

    async def _fetch_candidates(self, seed_actor: str) -> Tuple[List[FeedPost], Set[str]]:
        """Timeline posts first, then the actor's feed; also returns the feed's ids."""
        posts: List[FeedPost] = []
        if self.settings.include_timeline and self.credentials is not None:
            posts.extend(await self.fetcher.get_timeline(self.settings.feed_limit))
        feed = await self.fetcher.get_author_feed(seed_actor, self.settings.feed_limit)
        posts.extend(feed)

        unique: List[FeedPost] = []
        seen: Set[str] = set()
        for post in posts:
            if post.uri in seen or not post.text.strip():
                continue
            seen.add(post.uri)
            unique.append(post)

        if not unique:
            raise FetchError(f"No posts with text found for {seed_actor}",
                             operation='initialize')
        logger.debug("Fetched %d candidates (%d before filtering)", len(unique), len(posts))
        return unique, {post.uri for post in feed}

    async def _represent_all(self, posts: Sequence[FeedPost]) -> List[str]:
        """Represent ``posts`` concurrently; returns the ids that succeeded, in order."""
        results = await asyncio.gather(
            *(self._represent_post(post) for post in posts),
            return_exceptions=True,
        )
        represented: List[str] = []
        for post, result in zip(posts, results):
            if isinstance(result, BaseException):
                if not is_per_item_error(result):
                    raise result
                logger.debug("Dropping %s: %s", post.uri, result)
                continue
            represented.append(post.uri)
        return represented

    async def _represent_post(self, post: FeedPost) -> Representation:
        rep = await self.session.represent(post.text)
        self.session.cache_representation(post.uri, rep)
        self.graph.set_metadata(node_from_post(post))
        return rep

    # ----------------------------
    # Exploration
    # ----------------------------
    def select_node(self, node_id: str) -> bool:
        """Select ``node_id`` for the next step if its metadata is known."""
        if node_id == self.state.selected or not self.graph.has_metadata(node_id):
            return False
        self.state.selected = node_id
        return True

    async def explore_node(self) -> Optional[EdgeBatch]:
        """
        Record the nearest neighbours of the selected post as a new batch.

        Returns None without side effects when nothing is selected, the
        selection has no representation, or a newer step started meanwhile.

        Raises:
            ExplorationError: fetching, embedding or representing failed
        """
        selected = self.state.selected
        if (selected is None or self.session.index is None
                or selected not in self.session.representations):
            return None

        self.state.generation += 1
        generation = self.state.generation
        self.state.status = EngineStatus.EXPLORING
        logger.info("Exploring from %s", selected, extra={'generation': generation})

        try:
            if self.settings.expansion_enabled:
                await self._expand(selected)
            neighbours = self._neighbours(selected)
        except Exception as e:
            if generation != self.state.generation:
                logger.info("Discarding failed stale step %d: %s", generation, e)
                return None
            if is_representation_mismatch(e):
                logger.error("Representation length changed within the session: %s", e)
            elif not isinstance(e, KomichiError):
                logger.error("Exploring from %s failed", selected, exc_info=True)
            message = "Could not explore from the selected post"
            self.state.fail(message)
            raise ExplorationError(message, details={'selected': selected}) from e

        if generation != self.state.generation:
            logger.info("Discarding stale step %d (current %d)", generation, self.state.generation)
            return None

        batch = EdgeBatch(selected, tuple(neighbours))
        self.graph.add_batch(batch)
        self.state.mark_visited(neighbours)
        self.state.status = EngineStatus.READY
        self.state.last_error = None
        logger.info("Found %d neighbours for %s", len(batch), selected)

        self._persist(selected, neighbours)
        return batch

    async def advance(self) -> Optional[EdgeBatch]:
        """
        Select the first neighbour of the latest batch that has not been a
        source yet and explore from it.
        """
        next_id = self.next_unexplored()
        if next_id is None:
            return None
        self.select_node(next_id)
        return await self.explore_node()

    def next_unexplored(self) -> Optional[str]:
        batches = self.graph.batches
        if not batches:
            return None
        sources = {batch.source for batch in batches}
        for target in batches[-1].targets:
            if target not in sources and target in self.session.representations:
                return target
        return None

    def _neighbours(self, selected: str) -> List[str]:
        k = self.settings.k
        rep = self.session.representations[selected]
        hits = self.session.index.query(rep, k + 1)

        neighbours: List[str] = []
        for node_id, _distance in hits:
            if node_id == selected:
                continue
            if self.settings.track_visited and node_id in self.state.visited:
                continue
            neighbours.append(node_id)
        return neighbours[:k]

    async def _expand(self, selected: str) -> None:
        """Search for posts matching the selection's keywords and index the new ones."""
        node = self.graph.get_metadata(selected)
        if node is None:
            return
        rep = self.session.representations[selected]
        query = await extract_keywords(node.text, rep, self.strategy,
                                       self.settings.keyword_count)
        posts = await self.fetcher.search_posts(query, self.settings.search_limit)

        added = 0
        for post in posts:
            if post.uri in self.session.representations or not post.text.strip():
                continue
            try:
                rep = await self.session.represent(post.text)
            except KomichiError as e:
                if not is_per_item_error(e):
                    raise
                logger.debug("Dropping search result %s: %s", post.uri, e)
                continue
            self.session.cache_representation(post.uri, rep)
            self.graph.set_metadata(node_from_post(post))
            self.session.index.insert(post.uri, rep)
            added += 1
        logger.debug("Expansion with %r added %d posts", query, added)

    # ----------------------------
    # Persistence
    # ----------------------------
    def _persist(self, selected: str, neighbours: List[str]) -> None:
        if not self.settings.persist or self.writer is None or self.credentials is None:
            return

        resource = try_parse_resource_id(selected)
        if resource is None:
            logger.debug("Not persisting: %s is not a resource id", selected)
            return
        if resource.authority != self.credentials.did or not is_valid_tid(resource.rkey):
            logger.debug("Not persisting: %s is not an own post", selected)
            return

        subjects = filter_resource_ids(neighbours)
        task = asyncio.create_task(self._write(resource.rkey, subjects))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, key: str, subjects: List[str]) -> None:
        try:
            await self.writer.write(key, subjects, self.credentials)
        except WriteError:
            logger.warning("Failed to persist index %s", key, exc_info=True)

    async def flush(self) -> None:
        """Wait for all outstanding index writes; failures are logged, not raised."""
        while self._pending_writes:
            results = await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Index write failed: %s", result, exc_info=result)

    async def close(self) -> None:
        await self.flush()
        self.session.close()

