# rpcdoc/methodmap/models.py
"""
Method Map: the build-time catalog of RPC methods handed to the document builder.

Every type here is a frozen pydantic model, so a map produced by a front end can be
shipped as JSON (`MethodMap.to_dict`) and validated back (`MethodMap.from_dict`)
without losing structural equality.
"""
from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any, Iterable, Iterator, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_serializer,
    model_validator,
)

from rpcdoc.errors import MapIntegrityError

PrimitiveName = Literal[
    "string", "boolean", "null", "number", "float", "double", "integer",
    "int8", "int16", "int32", "int64",
    "uint8", "uint16", "uint32", "uint64",
]

ParamStructure = Literal["by-name", "by-position", "either"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


# ──────────────────────────────────────────────────────────────
# TypeRef variants
# ──────────────────────────────────────────────────────────────
class PrimitiveType(_Frozen):
    kind: Literal["primitive"] = "primitive"
    name: PrimitiveName


class NamedType(_Frozen):
    """
    A named composite. `id` is the deduplication key; `definition` may be left
    out to refer back to a type defined elsewhere (this is how recursion is spelled).
    """

    kind: Literal["named"] = "named"
    id: str = Field(..., min_length=1)
    definition: Optional[TypeDef] = None


class ArrayType(_Frozen):
    kind: Literal["array"] = "array"
    items: TypeRef


class MapType(_Frozen):
    kind: Literal["map"] = "map"
    values: TypeRef


class OptionalType(_Frozen):
    kind: Literal["optional"] = "optional"
    inner: TypeRef


class RawSchema(_Frozen):
    kind: Literal["raw"] = "raw"
    fragment: dict[str, Any] = Field(..., alias="schema")


TypeRef = Annotated[
    Union[PrimitiveType, NamedType, ArrayType, MapType, OptionalType, RawSchema],
    Field(discriminator="kind"),
]


# ──────────────────────────────────────────────────────────────
# Named composite definitions
# ──────────────────────────────────────────────────────────────
class FieldEntry(_Frozen):
    name: str = Field(..., min_length=1)
    type: TypeRef
    description: Optional[str] = None
    required: bool = True


class StructDef(_Frozen):
    kind: Literal["struct"] = "struct"
    description: Optional[str] = None
    fields: tuple[FieldEntry, ...] = ()
    additional_properties: bool = False

    @model_validator(mode="after")
    def _unique_fields(self) -> "StructDef":
        _reject_duplicates((f.name for f in self.fields), "struct field name")
        return self


class EnumDef(_Frozen):
    kind: Literal["enum"] = "enum"
    description: Optional[str] = None
    values: tuple[Union[StrictStr, StrictInt], ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_values(self) -> "EnumDef":
        _reject_duplicates(self.values, "enum value")
        return self


class AliasDef(_Frozen):
    kind: Literal["alias"] = "alias"
    description: Optional[str] = None
    target: TypeRef


class UnionDef(_Frozen):
    kind: Literal["union"] = "union"
    description: Optional[str] = None
    variants: tuple[TypeRef, ...] = Field(..., min_length=1)


TypeDef = Annotated[
    Union[StructDef, EnumDef, AliasDef, UnionDef],
    Field(discriminator="kind"),
]


# ──────────────────────────────────────────────────────────────
# Methods
# ──────────────────────────────────────────────────────────────
class ParamEntry(_Frozen):
    name: str = Field(..., min_length=1)
    type: TypeRef
    description: Optional[str] = None
    """Documentation supplied by the front end; None means undocumented."""
    required: bool = True
    default: Any = None
    """Only meaningful when given explicitly; ``default=None`` declares a null default."""
    deprecated: bool = False

    @property
    def is_required(self) -> bool:
        """Optional-typed params are never required, whatever the flag says."""
        return self.required and not isinstance(self.type, OptionalType)

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @model_serializer(mode="wrap")
    def drop_unset_default(self, handler):
        data = handler(self)
        if not self.has_default:
            data.pop("default", None)
        return data


class ResultEntry(_Frozen):
    type: TypeRef
    description: Optional[str] = None
    name: Optional[str] = None


class ExampleValue(_Frozen):
    name: str
    value: Any = None


class ExamplePairing(_Frozen):
    name: str
    summary: Optional[str] = None
    description: Optional[str] = None
    params: tuple[ExampleValue, ...] = ()
    result: Optional[ExampleValue] = None


class MethodEntry(_Frozen):
    name: str = Field(..., min_length=1)
    summary: Optional[str] = None
    description: Optional[str] = None
    params: tuple[ParamEntry, ...] = ()
    result: Optional[ResultEntry] = None
    deprecated: bool = False
    tags: frozenset[str] = frozenset()
    examples: tuple[ExamplePairing, ...] = ()
    param_structure: Optional[ParamStructure] = None

    @model_validator(mode="after")
    def _check_params(self) -> "MethodEntry":
        _reject_duplicates((p.name for p in self.params), "parameter name", method=self.name)
        declared = {p.name for p in self.params}
        for example in self.examples:
            unknown = [v.name for v in example.params if v.name not in declared]
            if unknown:
                raise MapIntegrityError(
                    "example refers to undeclared parameters",
                    {"method": self.name, "example": example.name, "params": unknown},
                )
        return self


def _reject_duplicates(names: Iterable[Any], what: str, **details: Any) -> None:
    seen: set[Any] = set()
    for name in names:
        if name in seen:
            raise MapIntegrityError(f"duplicate {what}", {**details, "name": name})
        seen.add(name)


for _model in (NamedType, ArrayType, MapType, OptionalType, FieldEntry, StructDef,
               AliasDef, UnionDef, ParamEntry, ResultEntry, MethodEntry):
    _model.model_rebuild()

_type_def_adapter: TypeAdapter = TypeAdapter(TypeDef)


# ──────────────────────────────────────────────────────────────
# MethodMap
# ──────────────────────────────────────────────────────────────
class MethodMap(Mapping):
    """
    Ordered, read-only mapping of method name → MethodEntry, plus an optional
    catalog of named type definitions (id → TypeDef) that back-references may use.
    """

    def __init__(
        self,
        entries: Iterable[MethodEntry] = (),
        types: Mapping[str, Any] | None = None,
    ):
        methods: dict[str, MethodEntry] = {}
        for entry in entries:
            if entry.name in methods:
                raise MapIntegrityError("duplicate method name", {"method": entry.name})
            methods[entry.name] = entry

        catalog: dict[str, Any] = {}
        for type_id, definition in (types or {}).items():
            if not isinstance(definition, BaseModel):
                definition = _type_def_adapter.validate_python(definition)
            catalog[type_id] = definition

        self._methods = MappingProxyType(methods)
        self._types = MappingProxyType(catalog)

    # ───── Mapping protocol ─────
    def __getitem__(self, name: str) -> MethodEntry:
        return self._methods[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def __repr__(self) -> str:
        return f"MethodMap({list(self._methods)!r})"

    @property
    def types(self) -> Mapping[str, Any]:
        return self._types

    def names(self) -> list[str]:
        return list(self._methods)

    # ───── Serialized form ─────
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MethodMap":
        """
        Load a map from its JSON-compatible form:
        ``{"methods": [...] | {name: {...}}, "types": {id: {...}}}``.
        When ``methods`` is a mapping, its keys supply missing method names.
        """
        raw_methods = data.get("methods", [])
        if isinstance(raw_methods, Mapping):
            raw_methods = [{"name": name, **body} for name, body in raw_methods.items()]
        try:
            entries = [MethodEntry.model_validate(item) for item in raw_methods]
            return cls(entries, data.get("types"))
        except ValidationError as e:
            raise MapIntegrityError("malformed method map", {"errors": e.errors(include_url=False)}) from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "methods": [entry.model_dump(mode="json", by_alias=True) for entry in self._methods.values()],
            "types": {
                type_id: _type_def_adapter.dump_python(definition, mode="json", by_alias=True)
                for type_id, definition in self._types.items()
            },
        }


# ──────────────────────────────────────────────────────────────
# Shorthand constructors used by front ends and hand-written maps
# ──────────────────────────────────────────────────────────────
def primitive(name: str) -> PrimitiveType:
    return PrimitiveType(name=name)


def named(type_id: str, definition: Any = None) -> NamedType:
    return NamedType(id=type_id, definition=definition)


def array_of(items: Any) -> ArrayType:
    return ArrayType(items=items)


def map_of(values: Any) -> MapType:
    return MapType(values=values)


def optional(inner: Any) -> OptionalType:
    return OptionalType(inner=inner)


def raw(schema: dict[str, Any]) -> RawSchema:
    return RawSchema(schema=schema)


def struct(*fields: FieldEntry, description: str | None = None, additional_properties: bool = False) -> StructDef:
    return StructDef(description=description, fields=fields, additional_properties=additional_properties)


def field(name: str, type: Any, description: str | None = None, required: bool = True) -> FieldEntry:
    return FieldEntry(name=name, type=type, description=description, required=required)
