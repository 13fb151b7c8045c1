# rpcdoc/client/client.py
import itertools
import logging
from typing import Any, List, Optional

import httpx

from rpcdoc.config.default import DISCOVER_METHOD
from rpcdoc.errors import JSONRPCError
from rpcdoc.schemas import OpenRpcDocument, RPCRequest


class JSONRPCTransport:
    """
    Minimal async JSON-RPC client.
    Pass `client` to reuse an existing httpx.AsyncClient (e.g. one bound to an ASGI app).
    """

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._logger = logging.getLogger("rpcdoc.client")

    async def __aenter__(self) -> "JSONRPCTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def call_method(self, method: str, params: Any = None, id: Optional[str] = None) -> Any:
        """Simple call with response"""
        req = RPCRequest(method=method, params=params, id=id or str(next(self._ids)))
        resp = await self.client.post(self.url, json=req.model_dump(exclude_none=True))
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            err = data["error"]
            raise JSONRPCError(code=err["code"], message=err["message"], data=err.get("data"))
        return data.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        """Notification (no response)"""
        req = RPCRequest(method=method, params=params, id=None)
        resp = await self.client.post(self.url, json=req.model_dump(exclude_none=True))
        # 204 = No Content -> success
        if resp.status_code != 204:
            self._logger.warning(f"Notification {method} failed with {resp.status_code}")

    async def batch(self, calls: List[dict]) -> List[Any]:
        """Batch calls"""
        # calls = [{"method": "add", "params": [1,2], "id": "1"}, ...]
        payload = [{"jsonrpc": "2.0", **call} for call in calls]
        resp = await self.client.post(self.url, json=payload)
        resp.raise_for_status()
        return resp.json() if resp.status_code != 204 else []

    async def discover(self) -> OpenRpcDocument:
        """Fetch the server's OpenRPC document through rpc.discover."""
        result = await self.call_method(DISCOVER_METHOD)
        self._logger.debug(f"Discovered {len(result.get('methods', []))} methods at {self.url}")
        return OpenRpcDocument.model_validate(result)

    async def close(self):
        await self.client.aclose()
