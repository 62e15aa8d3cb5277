"""Network collaborators: XRPC transport, identity resolution, fetching and writing."""

from .fetcher import CandidateFetcher, cdn_avatar_url
from .resolver import IdentityResolver, ResolvedActor
from .writer import Credentials, IndexRecordWriter, PersistenceWriter
from .xrpc import XrpcClient

__all__ = [
    'CandidateFetcher',
    'cdn_avatar_url',
    'IdentityResolver',
    'ResolvedActor',
    'Credentials',
    'IndexRecordWriter',
    'PersistenceWriter',
    'XrpcClient',
]
