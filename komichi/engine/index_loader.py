"""
Rebuilds a graph from index records persisted in actors' repositories.

Each ``blue.maril.komichi.index`` record stores the neighbours found for one
of the actor's posts: the record key is the post's key and ``subjects`` are
the neighbour uris. Loading turns every record into an edge batch; hydration
then fetches post text, author profile and keywords for every node.
"""

import logging
from typing import List, Optional, Protocol, Set

from ..client.fetcher import cdn_avatar_url
from ..core.errors import FetchError, KomichiError, RepresentationError, is_per_item_error
from ..core.identifiers import (
    INDEX_COLLECTION,
    POST_COLLECTION,
    parse_resource_id,
    try_parse_resource_id,
)
from ..core.records import IndexRecord, PostRecord, ProfileRecord, RepoRecord
from ..core.types import ContentNode, EdgeBatch
from ..embedding.keywords import extract_keywords
from .state import ExplorationSession

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    async def list_records(self, actor: str, collection: str,
                           limit: int = ...) -> List[RepoRecord]:
        ...

    async def get_post(self, uri: str) -> PostRecord:
        ...

    async def get_profile(self, actor: str) -> ProfileRecord:
        ...


class IndexGraphLoader:
    """Loads persisted index records of one or more actors into a session graph."""

    def __init__(self, fetcher: RecordSource, session: ExplorationSession,
                 keyword_count: int = 1, limit: int = 100):
        self.fetcher = fetcher
        self.session = session
        self.keyword_count = keyword_count
        self.limit = limit
        self.selected: Optional[str] = None
        self.loaded: Set[str] = set()

    @property
    def graph(self):
        return self.session.graph

    async def load(self, actor: str) -> List[EdgeBatch]:
        """
        Append one batch per valid index record of ``actor``.

        Returns the appended batches; an actor that was loaded before yields
        an empty list.

        Raises:
            FetchError: the records could not be listed or there are none
        """
        if actor in self.loaded:
            logger.info("Index of %s is already loaded", actor)
            return []

        records = await self.fetcher.list_records(actor, INDEX_COLLECTION, self.limit)
        if not records:
            raise FetchError(f"{actor} has no index records", operation='load')

        batches: List[EdgeBatch] = []
        for record in records:
            if not isinstance(record.value, IndexRecord):
                continue
            source = str(parse_resource_id(record.uri).with_collection(POST_COLLECTION))
            if record.value.dropped_subjects:
                logger.debug("Dropped %d invalid subjects of %s",
                             record.value.dropped_subjects, record.uri)
            batches.append(EdgeBatch(source, record.value.subjects))

        if not batches:
            raise FetchError(f"{actor} has no valid index records", operation='load')

        self.graph.extend(batches)
        self.selected = batches[0].source
        self.loaded.add(actor)
        logger.info("Loaded %d index records of %s", len(batches), actor)
        return batches

    async def explore(self) -> List[EdgeBatch]:
        """Load the index of the selected post's author."""
        if self.selected is None:
            return []
        resource = try_parse_resource_id(self.selected)
        if resource is None:
            return []
        return await self.load(resource.authority)

    def select(self, node_id: str) -> bool:
        if node_id == self.selected or node_id not in self.graph.nodes():
            return False
        self.selected = node_id
        return True

    async def hydrate(self) -> int:
        """
        Fetch metadata for every node that has none yet, one node at a time.

        Nodes whose post or profile cannot be fetched are skipped. Returns the
        number of nodes hydrated.
        """
        hydrated = 0
        for node_id in self.graph.nodes():
            if self.graph.has_metadata(node_id):
                continue
            try:
                node = await self._hydrate_node(node_id)
            except KomichiError as e:
                if not (is_per_item_error(e) or isinstance(e, FetchError)):
                    raise
                logger.debug("Skipping %s: %s", node_id, e)
                continue
            if self.graph.set_metadata(node):
                hydrated += 1
        logger.info("Hydrated %d nodes", hydrated)
        return hydrated

    async def _hydrate_node(self, node_id: str) -> ContentNode:
        resource = parse_resource_id(node_id)

        post = self.session.posts.get(node_id)
        if post is None:
            post = await self.fetcher.get_post(node_id)
            self.session.posts[node_id] = post

        profile = self.session.profiles.get(resource.authority)
        if profile is None:
            profile = await self.fetcher.get_profile(resource.authority)
            self.session.profiles[resource.authority] = profile

        keywords: Optional[str] = None
        try:
            rep = await self.session.represent(post.text)
        except RepresentationError as e:
            logger.debug("No keywords for %s: %s", node_id, e)
        else:
            self.session.cache_representation(node_id, rep)
            keywords = await extract_keywords(post.text, rep, self.session.strategy,
                                              self.keyword_count)

        return ContentNode(
            id=node_id,
            author_id=resource.authority,
            text=post.text,
            created_at=post.created_at,
            avatar_url=cdn_avatar_url(resource.authority, profile.avatar_cid),
            author_name=profile.display_name,
            keywords=keywords,
        )
