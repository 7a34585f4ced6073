"""
Client for the PM2 HTTP bridge that runs one sync process per explorer.
"""
import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class ProcessSupervisor(Protocol):
    async def find(self, name: str) -> Optional[str]:
        """Return the process status (online, stopped, errored...) or None when there is no such process."""
        ...

    async def start(self, name: str, workspace_id: int) -> None:
        ...

    async def delete(self, name: str) -> None:
        ...


class PM2Supervisor:
    def __init__(self, host: str, secret: str, timeout: float = 10.0):
        self.host = host.rstrip("/") if host else host
        self.secret = secret
        self.timeout = timeout

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        params = kwargs.pop("params", {})
        params["secret"] = self.secret
        async with httpx.AsyncClient(base_url=self.host, timeout=self.timeout) as client:
            response = await client.request(method, path, params=params, **kwargs)
            response.raise_for_status()
            return response

    async def find(self, name: str) -> Optional[str]:
        response = await self._request("GET", f"/processes/{name}")
        data = response.json() or {}
        pm2_env = data.get("pm2_env")
        return pm2_env.get("status") if pm2_env else None

    async def start(self, name: str, workspace_id: int) -> None:
        logger.info(f"Starting sync process {name}")
        await self._request("POST", "/processes", json={"slug": name, "workspaceId": workspace_id})

    async def delete(self, name: str) -> None:
        logger.info(f"Deleting sync process {name}")
        await self._request("POST", f"/processes/{name}/delete")
