# rpcdoc/server/dispatcher.py
import inspect
import logging
from typing import Any, Callable, Optional
from typing import TYPE_CHECKING

from rpcdoc.errors import INVALID_PARAMS, JSONRPCError

if TYPE_CHECKING:
    from rpcdoc.server.registry import RPCMethodRegistry


async def _call_fn(fn: Callable, params: Optional[Any]):
    """
    Call `fn` (sync or async) with params (None | list | dict).
    Always return concrete result (never a coroutine).
    Raises INVALID_PARAMS if params type is wrong.
    """
    try:
        if params is None:
            result = fn() if not inspect.iscoroutinefunction(fn) else await fn()
        elif isinstance(params, list):
            result = fn(*params) if not inspect.iscoroutinefunction(fn) else await fn(*params)
        elif isinstance(params, dict):
            result = fn(**params) if not inspect.iscoroutinefunction(fn) else await fn(**params)
        else:
            raise INVALID_PARAMS({"reason": "params must be list or dict or null"})
    except TypeError as e:
        # likely wrong signature / bad params
        raise INVALID_PARAMS({"reason": str(e)})

    # If the function (sync) returned an awaitable, await it.
    if inspect.isawaitable(result):
        return await result
    return result


class RPCDispatcher:
    def __init__(self, registry: "RPCMethodRegistry"):
        self.registry = registry
        self._logger = logging.getLogger("rpcdoc.registry")

    async def dispatch(self, method: str, params: Optional[Any], request_id: Any = None):
        fn = self.registry.get(method)  # raises METHOD_NOT_FOUND
        try:
            result = await _call_fn(fn, params)
            return {"result": result, "id": request_id}
        except JSONRPCError:
            raise
        except Exception as e:
            # Wrap ANY python error into JSONRPCError
            self._logger.exception(f"Handler for {method} failed")
            raise JSONRPCError(-32000, "Server error", {"exception": str(e)})
