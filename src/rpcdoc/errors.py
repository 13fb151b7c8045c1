# rpcdoc/errors.py
from typing import Any
from dataclasses import dataclass, field

@dataclass
class JSONRPCError(Exception):
    code: int
    message: str
    data: Any = None

    def to_dict(self):
        base = {"code": self.code, "message": self.message}
        if self.data is not None:
            base["data"] = self.data
        return base

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = lambda d=None: JSONRPCError(-32700, "Parse error", d)
INVALID_REQUEST = lambda d=None: JSONRPCError(-32600, "Invalid Request", d)
METHOD_NOT_FOUND = lambda d=None: JSONRPCError(-32601, "Method not found", d)
INVALID_PARAMS = lambda d=None: JSONRPCError(-32602, "Invalid params", d)
INTERNAL_ERROR = lambda d=None: JSONRPCError(-32603, "Internal error", d)
SERVER_ERROR = lambda code= -32000, d=None: JSONRPCError(code, "Server error", d)


# ──────────────────────────────────────────────────────────────
# Document construction errors (raised at start-up, never per request)
# ──────────────────────────────────────────────────────────────
@dataclass
class DocumentBuildError(Exception):
    """Base class for failures while turning a method map into a document."""

    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extra = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({extra})"


class MapIntegrityError(DocumentBuildError):
    """Duplicate method, ambiguous type identifier or missing documentation."""


class SchemaCycleUnresolved(DocumentBuildError):
    """A recursive type that a `$ref` stub cannot close."""


class SerializationError(DocumentBuildError):
    """The assembled document could not be rendered as JSON."""
