"""
Actor identity resolution.

A handle is resolved to a DID through a DNS TXT record (queried over
DNS-over-HTTPS) with the ``/.well-known/atproto-did`` endpoint as fallback.
The DID document then names the actor's PDS. Results are cached per
resolver instance.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..core.errors import FetchError, InvalidIdentifierError
from ..core.identifiers import is_valid_did, is_valid_handle

logger = logging.getLogger(__name__)

DEFAULT_PLC_DIRECTORY = "https://plc.directory"
DEFAULT_DOH_URL = "https://mozilla.cloudflare-dns.com/dns-query"
PDS_SERVICE_ID = "#atproto_pds"


@dataclass(frozen=True)
class ResolvedActor:
    """An actor's DID, its PDS endpoint and (when known) its handle."""
    did: str
    pds: str
    handle: Optional[str] = None


class IdentityResolver:
    """Resolves handles and DIDs to ``ResolvedActor`` records."""

    def __init__(self,
                 plc_directory: str = DEFAULT_PLC_DIRECTORY,
                 doh_url: str = DEFAULT_DOH_URL,
                 timeout: float = 10.0):
        self.plc_directory = plc_directory.rstrip("/")
        self.doh_url = doh_url
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._cache: Dict[str, ResolvedActor] = {}

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self) -> None:
        """Close the session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def resolve(self, actor: str) -> ResolvedActor:
        """
        Resolve a handle or DID.

        Raises:
            InvalidIdentifierError: ``actor`` is neither a DID nor a handle
            FetchError: resolution failed
        """
        cached = self._cache.get(actor)
        if cached is not None:
            return cached

        handle: Optional[str] = None
        if is_valid_did(actor):
            did = actor
        elif is_valid_handle(actor):
            handle = actor.lower()
            did = await self.resolve_handle(handle)
        else:
            raise InvalidIdentifierError(actor, kind='actor')

        document = await self.resolve_did(did)
        pds = _find_pds(document)
        if pds is None:
            raise FetchError(f"DID document of {did} names no PDS", operation='resolve')

        resolved = ResolvedActor(did=did, pds=pds, handle=handle)
        self._cache[actor] = resolved
        self._cache[did] = resolved
        logger.debug("Resolved %s to %s at %s", actor, did, pds)
        return resolved

    async def resolve_handle(self, handle: str) -> str:
        """Handle to DID via DNS first, then the well-known endpoint."""
        did = await self._resolve_handle_dns(handle)
        if did is None:
            did = await self._resolve_handle_http(handle)
        if did is None:
            raise FetchError(f"Could not resolve handle {handle}", operation='resolve')
        return did

    async def resolve_did(self, did: str) -> Dict[str, Any]:
        """Fetch the DID document of a ``did:plc`` or ``did:web`` identifier."""
        if did.startswith("did:plc:"):
            url = f"{self.plc_directory}/{did}"
        elif did.startswith("did:web:"):
            host = did[len("did:web:"):]
            url = f"https://{host}/.well-known/did.json"
        else:
            raise FetchError(f"Unsupported DID method: {did}", operation='resolve')

        document = await self._get_json(url)
        if not isinstance(document, dict) or document.get("id") != did:
            raise FetchError(f"Invalid DID document for {did}", operation='resolve')
        return document

    async def _resolve_handle_dns(self, handle: str) -> Optional[str]:
        params = {"name": f"_atproto.{handle}", "type": "TXT"}
        try:
            answer = await self._get_json(self.doh_url, params=params,
                                          headers={"Accept": "application/dns-json"})
        except FetchError as e:
            logger.debug("DNS lookup for %s failed: %s", handle, e)
            return None

        for record in (answer or {}).get("Answer") or []:
            data = str(record.get("data", "")).strip('"')
            if data.startswith("did="):
                did = data[len("did="):]
                if is_valid_did(did):
                    return did
        return None

    async def _resolve_handle_http(self, handle: str) -> Optional[str]:
        session = await self._ensure_session()
        url = f"https://{handle}/.well-known/atproto-did"
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    return None
                did = (await resp.text()).strip()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Well-known lookup for %s failed: %s", handle, e)
            return None
        return did if is_valid_did(did) else None

    async def _get_json(self, url: str,
                        params: Optional[Dict[str, str]] = None,
                        headers: Optional[Dict[str, str]] = None) -> Any:
        session = await self._ensure_session()
        try:
            async with session.get(url, params=params, headers=headers) as resp:
                if resp.status != 200:
                    raise FetchError(f"GET {url} returned HTTP {resp.status}",
                                     operation='resolve', status=resp.status)
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise FetchError(f"GET {url} failed: {e}", operation='resolve') from e


def _find_pds(document: Dict[str, Any]) -> Optional[str]:
    for service in document.get("service") or []:
        if not isinstance(service, dict):
            continue
        service_id = service.get("id", "")
        if service_id == PDS_SERVICE_ID or service_id.endswith(PDS_SERVICE_ID):
            endpoint = service.get("serviceEndpoint")
            if isinstance(endpoint, str):
                return endpoint
    return None
