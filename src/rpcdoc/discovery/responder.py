# rpcdoc/discovery/responder.py
import copy
import logging
import threading
from enum import Enum
from typing import Any

from rpcdoc.document.builder import DocumentBuilder, DocumentSettings
from rpcdoc.methodmap.models import MethodMap
from rpcdoc.schemas import OpenRpcDocument


class ResponderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BUILT = "built"
    SERVING = "serving"

    def __str__(self):
        return self.value


class DiscoveryResponder:
    """
    Serves the result of `rpc.discover`.

    The document is built once (on `build()` or on first `discover()`) and never
    rebuilt; every caller gets its own copy of the cached result, so nobody can
    mutate what the next caller sees.
    """

    def __init__(
        self,
        method_map: MethodMap,
        settings: DocumentSettings,
        builder: DocumentBuilder | None = None,
    ):
        self._method_map = method_map
        self._builder = builder or DocumentBuilder(settings)
        self._lock = threading.Lock()
        self._state = ResponderState.UNINITIALIZED
        self._document: OpenRpcDocument | None = None
        self._result: dict[str, Any] | None = None
        self._rendered: str | None = None
        self._logger = logging.getLogger("rpcdoc.discovery")

    # ───── Properties ─────
    @property
    def state(self) -> ResponderState:
        return self._state

    @property
    def document(self) -> OpenRpcDocument:
        """A private copy; the schema dicts inside a frozen model are still mutable."""
        return self.build()

    @property
    def rendered(self) -> str:
        """Cached JSON text of the document."""
        self._ensure_built()
        return self._rendered

    # ───── Lifecycle ─────
    def build(self) -> OpenRpcDocument:
        """Build the document exactly once. Errors propagate and leave the responder unbuilt."""
        self._ensure_built()
        return self._document.model_copy(deep=True)

    def _ensure_built(self) -> None:
        if self._document is not None:
            return
        with self._lock:
            if self._document is None:
                self._logger.debug("Building OpenRPC document")
                document = self._builder.build(self._method_map)
                result = document.to_dict()
                rendered = document.to_json()
                self._result, self._rendered = result, rendered
                self._document = document
                self._state = ResponderState.BUILT
                self._logger.info(f"Discovery document ready ({len(document.methods)} methods)")

    def discover(self) -> dict[str, Any]:
        """Handler for `rpc.discover`: takes no params, returns the document."""
        self._ensure_built()
        if self._state is not ResponderState.SERVING:
            self._state = ResponderState.SERVING
        return copy.deepcopy(self._result)
