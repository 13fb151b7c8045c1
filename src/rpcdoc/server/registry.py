# rpcdoc/server/registry.py
from __future__ import annotations

import inspect
import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type, get_type_hints

import anyio
import uvicorn
from fastapi import FastAPI
from fastapi.responses import Response

from rpcdoc.config import default
from rpcdoc.discovery.responder import DiscoveryResponder
from rpcdoc.document.builder import DocumentSettings
from rpcdoc.errors import METHOD_NOT_FOUND, MapIntegrityError
from rpcdoc.methodmap.models import MethodMap
from rpcdoc.server.dispatcher import RPCDispatcher
from rpcdoc.transport.http import HTTPTransport


# ──────────────────────────────────────────────────────────────
# _MethodWrapper – Holds function + metadata
# ──────────────────────────────────────────────────────────────
@dataclass
class _MethodWrapper:
    """
    Wraps an RPC handler with the metadata used for dispatch and introspection.

    This class is callable (behaves like the original function).
    """

    fn: Callable[..., Any]
    """Original function to be called."""

    name: str
    """RPC method name (as registered)."""

    description: str | None = None
    """Human-readable description of the method."""

    param_types: Dict[str, Type] = field(default_factory=dict)
    """Mapping of parameter name → type (from type hints)."""

    return_type: Optional[Type] = None
    """Return type of the function (from type hints)."""

    # ───── Make it callable (behaves like fn) ─────
    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Call the original function."""
        return self.fn(*args, **kwargs)

    # ───── Helper: Is async? ─────
    @property
    def is_async(self) -> bool:
        """Check if the wrapped function is async."""
        return inspect.iscoroutinefunction(self.fn)

    # ───── To JSON (for introspection) ─────
    def to_json(self) -> dict:
        """Return method info as JSON-serializable dict."""
        return {
            "name": self.name,
            "description": self.description,
            "param_types": {k: str(v) for k, v in self.param_types.items()},
            "return_type": str(self.return_type) if self.return_type else None,
            "is_async": self.is_async,
        }


# ──────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────
def configure_logging(level: str | int = "INFO"):
    logger = logging.getLogger("rpcdoc")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)


# ──────────────────────────────────────────────────────────────
# Transport Enum
# ──────────────────────────────────────────────────────────────
class Transport(str, Enum):
    STDIO = "stdio"
    HTTP = "http"

    def __str__(self):
        return self.value


# ──────────────────────────────────────────────────────────────
# Settings
# ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class RegistrySettings:
    warn_on_duplicate: bool = False
    log_level: str | int = default.LOG_LEVEL
    strict_mode: bool = False
    host: str = default.HOST
    port: int = default.PORT
    mount_path: str = default.MOUNT_PATH


# ──────────────────────────────────────────────────────────────
# Main Registry Class
# ──────────────────────────────────────────────────────────────
class RPCMethodRegistry:
    """
    Registry of JSON-RPC handlers that also answers `rpc.discover`.

    When a method map is supplied, its OpenRPC document is built before any
    transport starts; a broken map stops the server from starting at all.
    """

    def __init__(
        self,
        name: str | None = None,
        settings: RegistrySettings | dict | None = None,
        *,
        method_map: MethodMap | None = None,
        document_settings: DocumentSettings | dict | None = None,
    ):
        # normalize settings: accept dataclass or dict or None
        if settings is None:
            self._settings: RegistrySettings = RegistrySettings()
        elif isinstance(settings, RegistrySettings):
            self._settings = settings
        elif isinstance(settings, dict):
            self._settings = RegistrySettings(**settings)
        else:
            raise TypeError("settings must be RegistrySettings | dict | None")

        self._name = name or "RPCRegistry"
        self._methods: Dict[str, _MethodWrapper] = {}
        self._logger = logging.getLogger("rpcdoc.registry")
        self._app: FastAPI | None = None
        self._dispatcher = RPCDispatcher(self)
        self._transport = HTTPTransport(self._dispatcher)
        self._discovery: DiscoveryResponder | None = None
        self._prepared = False

        configure_logging(self._settings.log_level)

        if method_map is not None:
            if document_settings is None:
                document_settings = DocumentSettings(title=self._name, version="1.0.0")
            elif isinstance(document_settings, dict):
                document_settings = DocumentSettings(**document_settings)
            self._method_map = method_map
            self._discovery = DiscoveryResponder(method_map, document_settings)
            self.register(default.DISCOVER_METHOD, description="Returns the OpenRPC document describing this server.")(
                self._discover
            )

        self._logger.info(f"Initialized {self._name}")

    # ───── Properties ─────
    @property
    def name(self) -> str:
        return self._name

    @property
    def methods(self) -> Dict[str, Callable]:
        return {name: wrapper.fn for name, wrapper in self._methods.items()}

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    @property
    def discovery(self) -> DiscoveryResponder | None:
        return self._discovery

    # ───── Register Decorator ─────
    def register(self, name: str | None = None, description: str | None = None):
        def decorator(fn: Callable) -> Callable:
            method_name = name or fn.__name__

            if method_name in self._methods:
                if not self._settings.warn_on_duplicate:
                    raise ValueError(f"Method '{method_name}' already registered")
                self._logger.warning(f"Replacing handler for {method_name}")

            hints = get_type_hints(fn)
            return_hint = hints.pop("return", None)
            self._methods[method_name] = _MethodWrapper(
                fn=fn,
                name=method_name,
                description=description or inspect.getdoc(fn),
                param_types=hints,
                return_type=return_hint,
            )
            self._logger.debug(f"Registered: {method_name}")
            return fn
        return decorator

    # ───── Get Method ─────
    def get(self, method_name: str) -> _MethodWrapper:
        try:
            return self._methods[method_name]
        except KeyError:
            self._logger.error(f"Method not found: {method_name}")
            raise METHOD_NOT_FOUND({"method": method_name})

    # ───── Introspection ─────
    def list_methods(self) -> Dict[str, dict]:
        return {name: w.to_json() for name, w in self._methods.items()}

    def _discover(self) -> dict:
        return self._discovery.discover()

    # ───── Start-up ─────
    def prepare(self) -> None:
        """
        Build the discovery document and check it against the registered handlers.
        Raises DocumentBuildError; callers must not start serving if it does.
        """
        if self._discovery is None or self._prepared:
            return

        described = set(self._method_map)
        undescribed = sorted(n for n in self._methods if n != default.DISCOVER_METHOD and n not in described)
        if undescribed:
            if self._settings.strict_mode:
                raise MapIntegrityError("handlers missing from the method map", {"methods": undescribed})
            self._logger.warning(f"Handlers missing from the method map: {', '.join(undescribed)}")

        unhandled = sorted(described - set(self._methods))
        if unhandled:
            self._logger.warning(f"Method map describes methods with no handler: {', '.join(unhandled)}")

        self._discovery.build()
        self._prepared = True

    # ───── RUN METHOD ─────
    def run(
        self,
        transport: Transport | str = Transport.HTTP,
        *,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        """Run the JSON-RPC server with selected transport."""
        if isinstance(transport, str):
            try:
                transport = Transport(transport)
            except ValueError:
                raise ValueError(f"Invalid transport: {transport}. Choose from: {', '.join(t.value for t in Transport)}")

        host = host or self._settings.host
        port = port or self._settings.port

        # fail fast: never serve a stale or partial discovery document
        self.prepare()

        match transport:
            case Transport.STDIO:
                anyio.run(self._run_stdio_async)
            case Transport.HTTP:
                anyio.run(self._run_http_async, host, port)

    # ───── Transport Runners ─────
    async def _run_stdio_async(self):
        self._logger.info("Running in STDIO mode")
        while True:
            line = await anyio.to_thread.run_sync(sys.stdin.readline)
            if not line:
                break
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as e:
                self._logger.error(f"STDIO parse error: {e}")
                continue
            response = await self._transport.handle_payload(payload)
            if response:
                print(json.dumps(response))
                sys.stdout.flush()

    async def _run_http_async(self, host: str, port: int):
        config = uvicorn.Config(
            self.build_app(),
            host=host,
            port=port,
            log_level=self._settings.log_level.lower() if isinstance(self._settings.log_level, str) else "info",
        )
        server = uvicorn.Server(config)
        self._logger.info(f"Starting HTTP server at http://{host}:{port}{self._settings.mount_path}")
        await server.serve()

    # ───── FastAPI App Setup ─────
    def build_app(self) -> FastAPI:
        if self._app is not None:
            return self._app

        self.prepare()

        app = FastAPI(title=self._name)

        # RPC endpoint
        app.post(self._settings.mount_path)(self._transport.handle)

        # Methods introspection endpoint
        async def methods_endpoint():
            return {"result": self.list_methods(), "error": None}

        app.get("/methods")(methods_endpoint)

        if self._discovery is not None:
            # Same document as rpc.discover, as a static file
            async def openrpc_endpoint():
                return Response(content=self._discovery.rendered, media_type="application/json")

            app.get("/openrpc.json")(openrpc_endpoint)

        self._app = app
        return app
