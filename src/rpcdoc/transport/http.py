# rpcdoc/transport/http.py
import json
import logging
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from rpcdoc.errors import INVALID_REQUEST, PARSE_ERROR
from rpcdoc.schemas import RPCRequest, RPCResponse
from rpcdoc.server.dispatcher import RPCDispatcher


class HTTPTransport:
    def __init__(self, dispatcher: RPCDispatcher):
        self.dispatcher = dispatcher
        self._logger = logging.getLogger("rpcdoc.registry")

    async def handle(self, request: Request) -> Response:
        raw = await request.body()
        if not raw:
            return self._error_response(INVALID_REQUEST("empty body"), None, 400)

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            return self._error_response(PARSE_ERROR(str(e)), None, 400)

        resp = await self.handle_payload(payload)
        return Response(status_code=204) if resp is None else JSONResponse(resp)

    async def handle_payload(self, payload: Any) -> Any:
        """Shared by the HTTP and STDIO transports. None means nothing to send back."""
        if isinstance(payload, list):
            if not payload:
                return self._make_response(error=INVALID_REQUEST("empty batch"), id=None)
            responses = [r for r in [await self._handle_single(item) for item in payload] if r]
            return responses or None
        return await self._handle_single(payload)

    async def _handle_single(self, item: Any) -> Any:
        if not isinstance(item, dict):
            return self._make_response(error=INVALID_REQUEST("request must be an object"), id=None)
        try:
            req = RPCRequest.model_validate(item)
        except Exception as e:
            return self._make_response(error=INVALID_REQUEST(str(e)), id=item.get("id"))

        if req.id is None:  # notification
            try:
                await self.dispatcher.dispatch(req.method, req.params)
            except Exception as e:
                self._logger.warning(f"Notification {req.method} failed: {e}")
            return None

        try:
            result = await self.dispatcher.dispatch(req.method, req.params, req.id)
            return self._make_response(result=result["result"], id=req.id)
        except Exception as e:
            return self._make_response(error=e, id=req.id)

    def _make_response(self, result=None, error=None, id=None):
        # normalize error into a dict that RPCResponse expects
        if error:
            if hasattr(error, "to_dict"):
                error_content = error.to_dict()
            elif isinstance(error, dict):
                error_content = error
            else:
                error_content = {"code": -32000, "message": str(error)}
        else:
            error_content = None

        return _envelope(RPCResponse(result=result, error=error_content, id=id))

    def _error_response(self, error, id, status=400):
        return JSONResponse(
            status_code=status,
            content=_envelope(RPCResponse(error=error.to_dict(), id=id)),
        )


def _envelope(response: RPCResponse) -> dict:
    # a null result and a null id are both meaningful on the wire
    data = response.model_dump(exclude_none=True)
    data.setdefault("id", None)
    if response.error is None:
        data.setdefault("result", None)
    return data
