"""
Validation of external payloads into typed records.

Every payload coming from the network is checked once here and turned into
one of the record variants below; downstream code dispatches on ``kind``
instead of re-checking dictionary shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from .errors import InvalidIdentifierError, InvalidRecordError
from .identifiers import (
    INDEX_COLLECTION,
    POST_COLLECTION,
    PROFILE_COLLECTION,
    is_valid_did,
    is_valid_resource_id,
    is_valid_tid,
    parse_resource_id,
)


@dataclass(frozen=True)
class PostRecord:
    """``app.bsky.feed.post`` record value."""
    text: str
    created_at: str
    langs: Tuple[str, ...] = ()
    kind: str = "post"


@dataclass(frozen=True)
class ProfileRecord:
    """``app.bsky.actor.profile`` record value."""
    display_name: str = ""
    avatar_cid: Optional[str] = None
    kind: str = "profile"


@dataclass(frozen=True)
class IndexRecord:
    """``blue.maril.komichi.index`` record value.

    ``subjects`` only holds entries that passed resource id validation;
    the number of dropped entries is kept in ``dropped_subjects``.
    """
    created_at: str
    subjects: Tuple[str, ...]
    dropped_subjects: int = 0
    kind: str = "index"


KnownRecord = Union[PostRecord, ProfileRecord, IndexRecord]


@dataclass(frozen=True)
class RepoRecord:
    """A record listed from a repository together with its location."""
    uri: str
    cid: Optional[str]
    value: KnownRecord


@dataclass(frozen=True)
class FeedPost:
    """A post as returned by feed and search views (post plus author)."""
    uri: str
    author_did: str
    author_handle: str
    author_name: str
    avatar_url: str
    record: PostRecord

    @property
    def text(self) -> str:
        return self.record.text


def _require_str(value: Mapping[str, Any], key: str, uri: Optional[str]) -> str:
    item = value.get(key)
    if not isinstance(item, str):
        raise InvalidRecordError(f"Field {key!r} must be a string", uri=uri)
    return item


def parse_post(value: Mapping[str, Any], uri: Optional[str] = None) -> PostRecord:
    if not isinstance(value, Mapping):
        raise InvalidRecordError("Post record must be an object", uri=uri)
    text = _require_str(value, "text", uri)
    created_at = _require_str(value, "createdAt", uri)
    langs = value.get("langs") or ()
    if not isinstance(langs, (list, tuple)):
        langs = ()
    return PostRecord(
        text=text,
        created_at=created_at,
        langs=tuple(lang for lang in langs if isinstance(lang, str)),
    )


def parse_profile(value: Mapping[str, Any], uri: Optional[str] = None) -> ProfileRecord:
    if not isinstance(value, Mapping):
        raise InvalidRecordError("Profile record must be an object", uri=uri)
    display_name = value.get("displayName") or ""
    if not isinstance(display_name, str):
        raise InvalidRecordError("Field 'displayName' must be a string", uri=uri)

    avatar_cid = None
    avatar = value.get("avatar")
    if isinstance(avatar, Mapping):
        ref = avatar.get("ref")
        if isinstance(ref, Mapping) and isinstance(ref.get("$link"), str):
            avatar_cid = ref["$link"]
    return ProfileRecord(display_name=display_name, avatar_cid=avatar_cid)


def parse_index(value: Mapping[str, Any], uri: Optional[str] = None) -> IndexRecord:
    if not isinstance(value, Mapping):
        raise InvalidRecordError("Index record must be an object", uri=uri)
    if value.get("$type") != INDEX_COLLECTION:
        raise InvalidRecordError(f"Expected $type {INDEX_COLLECTION!r}", uri=uri)
    created_at = _require_str(value, "createdAt", uri)
    subjects = value.get("subjects")
    if not isinstance(subjects, list):
        raise InvalidRecordError("Field 'subjects' must be an array", uri=uri)

    valid: List[str] = [s for s in subjects if isinstance(s, str) and is_valid_resource_id(s)]
    return IndexRecord(
        created_at=created_at,
        subjects=tuple(valid),
        dropped_subjects=len(subjects) - len(valid),
    )


_PARSERS = {
    POST_COLLECTION: parse_post,
    PROFILE_COLLECTION: parse_profile,
    INDEX_COLLECTION: parse_index,
}


def parse_record(collection: str, value: Mapping[str, Any],
                 uri: Optional[str] = None) -> KnownRecord:
    """
    Validate a record value of ``collection`` into its typed variant.

    Raises:
        InvalidRecordError: unknown collection or malformed value
    """
    parser = _PARSERS.get(collection)
    if parser is None:
        raise InvalidRecordError(f"Unknown collection {collection!r}", uri=uri)
    return parser(value, uri)


def parse_repo_record(item: Mapping[str, Any]) -> RepoRecord:
    """
    Validate one entry of a ``com.atproto.repo.listRecords``/``getRecord`` reply.

    Index records additionally require a TID record key.

    Raises:
        InvalidIdentifierError: malformed uri
        InvalidRecordError: malformed value
    """
    uri = item.get("uri") if isinstance(item, Mapping) else None
    if not isinstance(uri, str):
        raise InvalidIdentifierError(str(uri), kind='resource')
    resource = parse_resource_id(uri)
    if resource.collection == INDEX_COLLECTION and not is_valid_tid(resource.rkey):
        raise InvalidIdentifierError(uri, kind='record key')

    cid = item.get("cid")
    value = parse_record(resource.collection, item.get("value"), uri)
    return RepoRecord(uri=uri, cid=cid if isinstance(cid, str) else None, value=value)


def parse_feed_post(view: Mapping[str, Any]) -> FeedPost:
    """
    Validate an ``app.bsky.feed.defs#postView`` (or a feed item wrapping one).

    Raises:
        InvalidIdentifierError: malformed post uri or author DID
        InvalidRecordError: malformed post record or author
    """
    if isinstance(view, Mapping) and isinstance(view.get("post"), Mapping):
        view = view["post"]
    if not isinstance(view, Mapping):
        raise InvalidRecordError("Post view must be an object")

    uri = view.get("uri")
    if not isinstance(uri, str) or not is_valid_resource_id(uri):
        raise InvalidIdentifierError(str(uri), kind='resource')

    author = view.get("author")
    if not isinstance(author, Mapping):
        raise InvalidRecordError("Post view has no author", uri=uri)
    did = author.get("did")
    if not isinstance(did, str) or not is_valid_did(did):
        raise InvalidIdentifierError(str(did), kind='actor')

    record = parse_post(view.get("record"), uri)
    return FeedPost(
        uri=uri,
        author_did=did,
        author_handle=author.get("handle") or "",
        author_name=author.get("displayName") or "",
        avatar_url=author.get("avatar") or "",
        record=record,
    )
