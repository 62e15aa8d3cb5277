"""
Minimal XRPC client on aiohttp.

XRPC methods are plain HTTP endpoints under ``/xrpc/{nsid}``: queries are
GET requests with url parameters, procedures are POST requests with a JSON
body. Errors come back as ``{"error": ..., "message": ...}`` objects.
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from ..core.errors import XrpcError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "komichi/0.1 aiohttp"


class XrpcClient:
    """
    XRPC client bound to one service endpoint.

    Usage:
        async with XrpcClient("https://public.api.bsky.app") as client:
            feed = await client.query("app.bsky.feed.getAuthorFeed",
                                      {"actor": "alice.example.com"})
    """

    def __init__(self, service: str,
                 access_token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.service = service.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self.session

    async def close(self) -> None:
        """Close the session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def __aenter__(self) -> "XrpcClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _headers(self) -> Dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    def _url(self, nsid: str) -> str:
        return f"{self.service}/xrpc/{nsid}"

    async def query(self, nsid: str,
                    params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Call an XRPC query (GET)."""
        clean = {key: _param(value) for key, value in (params or {}).items() if value is not None}
        return await self._request("GET", nsid, params=clean)

    async def procedure(self, nsid: str,
                        body: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Call an XRPC procedure (POST with a JSON body)."""
        return await self._request("POST", nsid, json=dict(body or {}))

    async def _request(self, method: str, nsid: str, **kwargs: Any) -> Dict[str, Any]:
        session = await self._ensure_session()
        logger.debug("XRPC %s %s", method, nsid)
        try:
            async with session.request(method, self._url(nsid),
                                       headers=self._headers(), **kwargs) as resp:
                payload = await _read_json(resp)
                if resp.status < 200 or resp.status >= 300:
                    error = payload.get("error") if isinstance(payload, dict) else None
                    message = payload.get("message") if isinstance(payload, dict) else None
                    raise XrpcError(
                        f"{nsid} failed with HTTP {resp.status}: {message or error or resp.reason}",
                        nsid=nsid,
                        status=resp.status,
                        error=error,
                    )
                return payload if isinstance(payload, dict) else {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise XrpcError(f"{nsid} request failed: {e}", nsid=nsid) from e


def _param(value: Any) -> Any:
    # aiohttp rejects bools in query strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


async def _read_json(resp: aiohttp.ClientResponse) -> Any:
    try:
        return await resp.json(content_type=None)
    except ValueError:
        return None
