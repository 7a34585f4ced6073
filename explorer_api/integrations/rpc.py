"""
Minimal JSON-RPC client used to check that an explorer's node is reachable.

Only `net_version` is needed here; chain ingestion happens in the sync
processes, not in this service.
"""
import asyncio
import itertools
import json
import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import httpx
import websockets

from explorer_api.config import settings

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class RpcError(Exception):
    pass


def _payload(method: str, params: Optional[List[Any]]) -> dict:
    return {"jsonrpc": "2.0", "id": next(_request_ids), "method": method, "params": params or []}


def _result(body: dict) -> Any:
    if body.get("error"):
        raise RpcError(body["error"].get("message", "RPC error"))
    return body.get("result")


class HttpProvider:
    def __init__(self, url: str):
        self.url = url

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        async with httpx.AsyncClient() as client:
            response = await client.post(self.url, json=_payload(method, params))
            response.raise_for_status()
            return _result(response.json())


class WebsocketProvider:
    def __init__(self, url: str):
        self.url = url

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        async with websockets.connect(self.url) as websocket:
            await websocket.send(json.dumps(_payload(method, params)))
            return _result(json.loads(await websocket.recv()))


def get_provider(url: str):
    scheme = urlparse(url).scheme.lower()
    if scheme in ("ws", "wss"):
        return WebsocketProvider(url)
    if scheme in ("http", "https"):
        return HttpProvider(url)
    raise ValueError(f"Unsupported RPC scheme: {url}")


class ProviderConnector:
    def __init__(self, server: str):
        self.server = server
        self.provider = get_provider(server)

    async def fetch_network_id(self):
        network_id = await self.provider.request("net_version")
        return str(network_id) if network_id is not None else None


async def with_timeout(awaitable, timeout: Optional[float] = None):
    """Await `awaitable`, raising asyncio.TimeoutError if it takes longer than `timeout` seconds."""
    return await asyncio.wait_for(awaitable, timeout=timeout or settings.RPC_TIMEOUT_SECONDS)
