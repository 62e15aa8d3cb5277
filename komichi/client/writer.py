"""
Persistence of discovered edges as index records in the local actor's repo.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Sequence

from ..core.errors import WriteError, XrpcError
from ..core.identifiers import INDEX_COLLECTION
from ..core.types import PersistedIndexEntry
from .xrpc import DEFAULT_TIMEOUT, XrpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Ready-made session of the local actor."""
    did: str
    access_token: str
    pds: str

    @classmethod
    def from_env(cls) -> Optional["Credentials"]:
        """Read ``KOMICHI_DID``, ``KOMICHI_ACCESS_TOKEN`` and ``KOMICHI_PDS``."""
        did = os.environ.get("KOMICHI_DID")
        token = os.environ.get("KOMICHI_ACCESS_TOKEN")
        pds = os.environ.get("KOMICHI_PDS")
        if not (did and token and pds):
            return None
        return cls(did=did, access_token=token, pds=pds)

    def __repr__(self) -> str:
        return f"Credentials(did={self.did!r}, pds={self.pds!r})"


class PersistenceWriter(Protocol):
    async def write(self, key: str, subjects: Sequence[str],
                    credentials: Credentials) -> None:
        ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IndexRecordWriter:
    """Writes index records with ``com.atproto.repo.putRecord``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._clients: Dict[Credentials, XrpcClient] = {}

    def _client(self, credentials: Credentials) -> XrpcClient:
        client = self._clients.get(credentials)
        if client is None:
            client = XrpcClient(credentials.pds, access_token=credentials.access_token,
                                timeout=self.timeout)
            self._clients[credentials] = client
        return client

    async def write(self, key: str, subjects: Sequence[str],
                    credentials: Credentials) -> None:
        """
        Store ``subjects`` under record key ``key``, replacing any previous value.

        Raises:
            WriteError: if the PDS rejects the record or cannot be reached
        """
        entry = PersistedIndexEntry(key=key, subjects=tuple(subjects), created_at=_now())
        body = {
            "repo": credentials.did,
            "collection": INDEX_COLLECTION,
            "rkey": entry.key,
            "record": entry.to_record(),
        }
        try:
            await self._client(credentials).procedure("com.atproto.repo.putRecord", body)
        except XrpcError as e:
            raise WriteError(f"Failed to write index {key}: {e.message}",
                             key=key, status=e.status) from e
        logger.debug("Wrote index %s with %d subjects", key, len(entry.subjects))

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
