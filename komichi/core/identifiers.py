"""
Syntax checks for AT Protocol identifiers.

Covers DIDs, handles, NSIDs, record keys, TIDs (time-ordered record keys) and
``at://authority/collection/rkey`` resource ids. Only syntax is checked here;
resolution happens in ``komichi.client.resolver``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import InvalidIdentifierError

DID_PATTERN = re.compile(r"^did:[a-z]+:[a-zA-Z0-9._:%-]*[a-zA-Z0-9._-]$")
HANDLE_PATTERN = re.compile(
    r"^([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+"
    r"[a-zA-Z]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$"
)
NSID_PATTERN = re.compile(
    r"^[a-zA-Z]([a-zA-Z0-9-]{0,62}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,62}[a-zA-Z0-9])?)+"
    r"(\.[a-zA-Z]([a-zA-Z0-9]{0,62})?)$"
)
RECORD_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_~.:-]{1,512}$")
TID_PATTERN = re.compile(r"^[234567abcdefghij][234567abcdefghijklmnopqrstuvwxyz]{12}$")

MAX_DID_LENGTH = 2048
MAX_HANDLE_LENGTH = 253
MAX_NSID_LENGTH = 317

POST_COLLECTION = "app.bsky.feed.post"
PROFILE_COLLECTION = "app.bsky.actor.profile"
INDEX_COLLECTION = "blue.maril.komichi.index"


def is_valid_did(value: str) -> bool:
    return len(value) <= MAX_DID_LENGTH and DID_PATTERN.match(value) is not None


def is_valid_handle(value: str) -> bool:
    return len(value) <= MAX_HANDLE_LENGTH and HANDLE_PATTERN.match(value) is not None


def is_valid_actor_id(value: str) -> bool:
    """An actor identifier is either a DID or a handle."""
    return is_valid_did(value) or is_valid_handle(value)


def is_valid_nsid(value: str) -> bool:
    return len(value) <= MAX_NSID_LENGTH and NSID_PATTERN.match(value) is not None


def is_valid_record_key(value: str) -> bool:
    if value in (".", ".."):
        return False
    return RECORD_KEY_PATTERN.match(value) is not None


def is_valid_tid(value: str) -> bool:
    """Check that ``value`` is a syntactically valid time-ordered key."""
    return TID_PATTERN.match(value) is not None


@dataclass(frozen=True)
class ResourceId:
    """Parsed ``at://`` uri."""
    authority: str
    collection: str
    rkey: str

    def __str__(self) -> str:
        return f"at://{self.authority}/{self.collection}/{self.rkey}"

    def with_collection(self, collection: str) -> "ResourceId":
        """Same authority and record key in another collection."""
        return ResourceId(self.authority, collection, self.rkey)


def parse_resource_id(uri: str) -> ResourceId:
    """
    Parse an ``at://authority/collection/rkey`` uri.

    Raises:
        InvalidIdentifierError: if any component is malformed
    """
    if not isinstance(uri, str) or not uri.startswith("at://"):
        raise InvalidIdentifierError(str(uri), kind='resource')

    parts = uri[len("at://"):].split("/")
    if len(parts) != 3:
        raise InvalidIdentifierError(uri, kind='resource')

    authority, collection, rkey = parts
    if not is_valid_actor_id(authority):
        raise InvalidIdentifierError(uri, kind='resource')
    if not is_valid_nsid(collection):
        raise InvalidIdentifierError(uri, kind='resource')
    if not is_valid_record_key(rkey):
        raise InvalidIdentifierError(uri, kind='resource')

    return ResourceId(authority, collection, rkey)


def is_valid_resource_id(uri: str) -> bool:
    try:
        parse_resource_id(uri)
    except InvalidIdentifierError:
        return False
    return True


def try_parse_resource_id(uri: str) -> Optional[ResourceId]:
    """Like ``parse_resource_id`` but returns None instead of raising."""
    try:
        return parse_resource_id(uri)
    except InvalidIdentifierError:
        return None


def filter_resource_ids(uris: Iterable[str]) -> List[str]:
    """Keep only syntactically valid resource ids, preserving order."""
    return [uri for uri in uris if is_valid_resource_id(uri)]
