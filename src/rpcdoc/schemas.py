# rpcdoc/schemas.py
import json
from typing import Any, ClassVar, Optional, Union, List

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from rpcdoc.errors import SerializationError

JSONValue = Union[str, int, float, bool, None, dict, list]

# ──────────────────────────────────────────────────────────────
# JSON-RPC 2.0 envelopes
# ──────────────────────────────────────────────────────────────
class RPCRequest(BaseModel):
    jsonrpc: str = Field(default="2.0")
    method: str
    params: Optional[Union[List[Any], dict]] = None
    id: Optional[Union[int, str, None]] = None  # None => notification (no response expected)

class RPCErrorObject(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None

class RPCResponse(BaseModel):
    jsonrpc: str = Field(default="2.0")
    result: Optional[Any] = None
    error: Optional[RPCErrorObject] = None
    id: Optional[Union[int, str, None]]


# ──────────────────────────────────────────────────────────────
# OpenRPC document
# ──────────────────────────────────────────────────────────────
class _DocModel(BaseModel):
    """
    Frozen OpenRPC object. Unset optional members are left out of the JSON,
    flags listed in `_omit_false` only appear when true and lists in
    `_omit_empty` only when non-empty.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    _omit_false: ClassVar[frozenset[str]] = frozenset()
    _omit_empty: ClassVar[frozenset[str]] = frozenset()
    _keep_null: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def drop_unset_members(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if not (value is None and key not in self._keep_null)
            and not (key in self._omit_false and value is False)
            and not (key in self._omit_empty and not value)
        }


class Info(_DocModel):
    title: str
    description: Optional[str] = None
    version: str


class Server(_DocModel):
    name: str
    url: str


class Tag(_DocModel):
    name: str


class ContentDescriptor(_DocModel):
    _omit_false: ClassVar[frozenset[str]] = frozenset({"required", "deprecated"})

    name: str
    summary: Optional[str] = None
    description: Optional[str] = None
    required: bool = False
    schema_: dict[str, Any] = Field(..., alias="schema")
    deprecated: bool = False


class Example(_DocModel):
    _keep_null: ClassVar[frozenset[str]] = frozenset({"value"})

    name: str
    value: Any = None


class ExamplePairing(_DocModel):
    name: str
    summary: Optional[str] = None
    description: Optional[str] = None
    params: tuple[Example, ...] = ()
    result: Optional[Example] = None


class Method(_DocModel):
    _omit_false: ClassVar[frozenset[str]] = frozenset({"deprecated"})
    _omit_empty: ClassVar[frozenset[str]] = frozenset({"tags", "examples"})

    name: str
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[Tag, ...] = ()
    params: tuple[ContentDescriptor, ...] = ()
    result: Optional[ContentDescriptor] = None
    deprecated: bool = False
    param_structure: Optional[str] = Field(None, alias="paramStructure")
    examples: tuple[ExamplePairing, ...] = ()


class Components(_DocModel):
    schemas: dict[str, dict[str, Any]] = Field(default_factory=dict)


class OpenRpcDocument(_DocModel):
    _omit_empty: ClassVar[frozenset[str]] = frozenset({"servers"})

    openrpc: str
    info: Info
    servers: tuple[Server, ...] = ()
    methods: tuple[Method, ...] = ()
    components: Components = Field(default_factory=Components)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with OpenRPC member names."""
        try:
            return self.model_dump(mode="json", by_alias=True)
        except (TypeError, ValueError) as e:
            raise SerializationError("document could not be serialized", {"reason": str(e)}) from e

    def to_json(self, indent: int | None = 2) -> str:
        """Deterministic JSON text: member order follows declaration and first-encounter order."""
        data = self.to_dict()
        try:
            return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError("document could not be rendered as JSON", {"reason": str(e)}) from e

    @classmethod
    def from_json(cls, text: str | bytes) -> "OpenRpcDocument":
        return cls.model_validate_json(text)
