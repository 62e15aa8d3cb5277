"""
Candidate fetching from the app view and from actors' repositories.

Feed and search queries go to the app view; record reads go to the PDS that
hosts the repository. Every payload is validated into the record types of
``komichi.core.records`` here, at the boundary. Items that fail validation are
dropped one by one; a failing call raises ``FetchError``.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from ..core.errors import FetchError, XrpcError, is_per_item_error
from ..core.identifiers import POST_COLLECTION, PROFILE_COLLECTION, parse_resource_id
from ..core.records import (
    FeedPost,
    PostRecord,
    ProfileRecord,
    RepoRecord,
    parse_feed_post,
    parse_repo_record,
)
from .resolver import IdentityResolver
from .xrpc import DEFAULT_TIMEOUT, XrpcClient

logger = logging.getLogger(__name__)

AVATAR_CDN = "https://cdn.bsky.app/img/avatar/plain"

T = TypeVar("T")


def cdn_avatar_url(did: str, cid: Optional[str]) -> str:
    """CDN url of an avatar blob, empty when the profile has none."""
    if not cid:
        return ""
    return f"{AVATAR_CDN}/{did}/{cid}"


def _parse_items(items: Any, parse: Callable[[Mapping[str, Any]], T], what: str) -> List[T]:
    parsed: List[T] = []
    for item in items if isinstance(items, list) else []:
        try:
            parsed.append(parse(item))
        except Exception as e:
            if not is_per_item_error(e):
                raise
            logger.debug("Dropping invalid %s: %s", what, e)
    return parsed


class CandidateFetcher:
    """
    Reads posts, profiles and records for the exploration engine.

    Args:
        appview: Client for the public app view
        resolver: Resolves actors to their PDS for repository reads
        authenticated: Client carrying the local actor's credentials, needed
            for the home timeline
    """

    def __init__(self, appview: XrpcClient,
                 resolver: IdentityResolver,
                 authenticated: Optional[XrpcClient] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.appview = appview
        self.resolver = resolver
        self.authenticated = authenticated
        self.timeout = timeout
        self._pds_clients: Dict[str, XrpcClient] = {}

    @property
    def has_credentials(self) -> bool:
        return self.authenticated is not None

    async def close(self) -> None:
        await self.appview.close()
        await self.resolver.close()
        if self.authenticated is not None:
            await self.authenticated.close()
        for client in self._pds_clients.values():
            await client.close()

    # ----------------------------
    # App view
    # ----------------------------
    async def get_author_feed(self, actor: str, limit: int = 50) -> List[FeedPost]:
        data = await self._call(self.appview, "app.bsky.feed.getAuthorFeed",
                                {"actor": actor, "limit": limit})
        return _parse_items(data.get("feed"), parse_feed_post, "feed item")

    async def get_timeline(self, limit: int = 50) -> List[FeedPost]:
        if self.authenticated is None:
            raise FetchError("The home timeline requires credentials",
                             operation='app.bsky.feed.getTimeline')
        data = await self._call(self.authenticated, "app.bsky.feed.getTimeline",
                                {"limit": limit})
        return _parse_items(data.get("feed"), parse_feed_post, "timeline item")

    async def search_posts(self, query: str, limit: int = 25) -> List[FeedPost]:
        client = self.authenticated or self.appview
        data = await self._call(client, "app.bsky.feed.searchPosts",
                                {"q": query, "limit": limit})
        return _parse_items(data.get("posts"), parse_feed_post, "search result")

    # ----------------------------
    # Repositories
    # ----------------------------
    async def list_records(self, actor: str, collection: str,
                           limit: int = 100) -> List[RepoRecord]:
        resolved = await self.resolver.resolve(actor)
        client = self._pds_client(resolved.pds)
        data = await self._call(client, "com.atproto.repo.listRecords",
                                {"repo": resolved.did, "collection": collection,
                                 "limit": limit})
        return _parse_items(data.get("records"), parse_repo_record, "record")

    async def get_post(self, uri: str) -> PostRecord:
        """
        Fetch and validate the post at ``uri``.

        Raises:
            InvalidIdentifierError: malformed ``uri``
            InvalidRecordError: the record is not a post
            FetchError: the call failed
        """
        resource = parse_resource_id(uri)
        record = await self._get_record(resource.authority, POST_COLLECTION, resource.rkey)
        if not isinstance(record.value, PostRecord):
            raise FetchError(f"{uri} is not a post", operation='com.atproto.repo.getRecord')
        return record.value

    async def get_profile(self, actor: str) -> ProfileRecord:
        record = await self._get_record(actor, PROFILE_COLLECTION, "self")
        if not isinstance(record.value, ProfileRecord):
            raise FetchError(f"Profile of {actor} is not a profile record",
                             operation='com.atproto.repo.getRecord')
        return record.value

    async def _get_record(self, actor: str, collection: str, rkey: str) -> RepoRecord:
        resolved = await self.resolver.resolve(actor)
        client = self._pds_client(resolved.pds)
        data = await self._call(client, "com.atproto.repo.getRecord",
                                {"repo": resolved.did, "collection": collection, "rkey": rkey})
        return parse_repo_record(data)

    def _pds_client(self, pds: str) -> XrpcClient:
        client = self._pds_clients.get(pds)
        if client is None:
            client = XrpcClient(pds, timeout=self.timeout)
            self._pds_clients[pds] = client
        return client

    async def _call(self, client: XrpcClient, nsid: str,
                    params: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            return await client.query(nsid, params)
        except XrpcError as e:
            logger.error("%s failed: %s", nsid, e.message)
            raise FetchError(e.message, operation=nsid, status=e.status) from e
