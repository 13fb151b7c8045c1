# rpcdoc/document/type_mapping.py
"""
TypeRef → JSON Schema (draft-07) mapping.

Named composites are rendered once into the components section and referenced
everywhere else through ``{"$ref": "#/components/schemas/<id>"}``.
"""
from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping

from rpcdoc.config.default import COMPONENTS_SCHEMAS_PATH
from rpcdoc.errors import MapIntegrityError, SchemaCycleUnresolved
from rpcdoc.methodmap.models import (
    AliasDef,
    ArrayType,
    EnumDef,
    MapType,
    NamedType,
    OptionalType,
    PrimitiveType,
    RawSchema,
    StructDef,
    UnionDef,
)

logger = logging.getLogger("rpcdoc.document")

_PRIMITIVES: dict[str, dict[str, Any]] = {
    "string": {"type": "string"},
    "boolean": {"type": "boolean"},
    "null": {"type": "null"},
    "number": {"type": "number"},
    "float": {"type": "number", "format": "float"},
    "double": {"type": "number", "format": "double"},
    "integer": {"type": "integer"},
}
for _bits in (8, 16, 32, 64):
    _PRIMITIVES[f"int{_bits}"] = {"type": "integer", "format": f"int{_bits}"}
    _PRIMITIVES[f"uint{_bits}"] = {"type": "integer", "format": f"uint{_bits}", "minimum": 0}


def ref_schema(type_id: str) -> dict[str, Any]:
    return {"$ref": f"{COMPONENTS_SCHEMAS_PATH}{type_id}"}


def annotate(schema: dict[str, Any], **keywords: Any) -> dict[str, Any]:
    """Attach annotation keywords; None values are skipped."""
    return attach(schema, {k: v for k, v in keywords.items() if v is not None})


def attach(schema: dict[str, Any], keywords: dict[str, Any]) -> dict[str, Any]:
    # a bare $ref ignores siblings in draft-07, so wrap it
    if not keywords:
        return schema
    if "$ref" in schema:
        return {**keywords, "allOf": [schema]}
    return {**keywords, **schema}


def nullable(schema: dict[str, Any]) -> dict[str, Any]:
    """Widen a schema so that an explicit null is accepted."""
    kind = schema.get("type")
    if "$ref" in schema or "enum" in schema or kind is None:
        return {"anyOf": [schema, {"type": "null"}]}
    if isinstance(kind, str):
        return schema if kind == "null" else {**schema, "type": [kind, "null"]}
    return schema if "null" in kind else {**schema, "type": [*kind, "null"]}


class SchemaMapper:
    """
    Memoizing, identifier-keyed schema cache.

    ``collect`` registers every inline definition up front so back-references can
    be resolved whatever order they appear in; ``schema_for`` then renders lazily in
    depth-first order, which fixes the order of ``schemas``.
    """

    def __init__(self, catalog: Mapping[str, Any] | None = None):
        self._definitions: dict[str, Any] = {}
        # id -> definition with nested named types reduced to their id
        self._shapes: dict[str, Any] = {}
        self._schemas: dict[str, dict[str, Any]] = {}
        # id -> guard depth at which its rendering started
        self._in_progress: dict[str, int] = {}
        self._guard_depth = 0

        for type_id, definition in (catalog or {}).items():
            self._define(type_id, definition)
            self.collect(_children_of(definition))

    @property
    def schemas(self) -> dict[str, dict[str, Any]]:
        return dict(self._schemas)

    def definition_of(self, type_id: str) -> Any:
        return self._definitions.get(type_id)

    # ───── Definition collection ─────
    def collect(self, refs: Iterable[Any]) -> None:
        for ref in refs:
            self._collect(ref)

    def _collect(self, ref: Any) -> None:
        if isinstance(ref, NamedType):
            if ref.definition is None:
                return
            self._define(ref.id, ref.definition)
            for child in _children_of(ref.definition):
                self._collect(child)
        elif isinstance(ref, ArrayType):
            self._collect(ref.items)
        elif isinstance(ref, MapType):
            self._collect(ref.values)
        elif isinstance(ref, OptionalType):
            self._collect(ref.inner)

    def _define(self, type_id: str, definition: Any) -> None:
        shape = _shape_of(definition)
        known = self._shapes.get(type_id)
        if known is None:
            self._definitions[type_id] = definition
            self._shapes[type_id] = shape
        elif known != shape:
            raise MapIntegrityError(
                "type identifier is used for two different shapes", {"type": type_id}
            )

    # ───── Rendering ─────
    def schema_for(self, ref: Any) -> dict[str, Any]:
        if isinstance(ref, PrimitiveType):
            return dict(_PRIMITIVES[ref.name])
        if isinstance(ref, NamedType):
            return self._named(ref)
        if isinstance(ref, ArrayType):
            with self._guarded():
                return {"type": "array", "items": self.schema_for(ref.items)}
        if isinstance(ref, MapType):
            with self._guarded():
                return {"type": "object", "additionalProperties": self.schema_for(ref.values)}
        if isinstance(ref, OptionalType):
            return nullable(self.schema_for(ref.inner))
        if isinstance(ref, RawSchema):
            return copy.deepcopy(ref.fragment)
        raise TypeError(f"not a TypeRef: {ref!r}")

    def _named(self, ref: NamedType) -> dict[str, Any]:
        type_id = ref.id
        if ref.definition is not None:
            self._define(type_id, ref.definition)

        if type_id in self._in_progress:
            if self._in_progress[type_id] == self._guard_depth:
                raise SchemaCycleUnresolved(
                    "recursive type does not pass through an object or array", {"type": type_id}
                )
            return ref_schema(type_id)
        if type_id in self._schemas:
            return ref_schema(type_id)

        definition = self._definitions.get(type_id)
        if definition is None:
            raise MapIntegrityError("reference to an undefined type", {"type": type_id})

        # Stub first: pins the component's position and lets self-references close.
        self._schemas[type_id] = {}
        self._in_progress[type_id] = self._guard_depth
        try:
            self._schemas[type_id] = self._render_definition(definition)
        finally:
            del self._in_progress[type_id]
        logger.debug(f"Rendered component schema: {type_id}")
        return ref_schema(type_id)

    def _render_definition(self, definition: Any) -> dict[str, Any]:
        if isinstance(definition, StructDef):
            return self._render_struct(definition)
        if isinstance(definition, EnumDef):
            kinds = []
            if any(isinstance(v, str) for v in definition.values):
                kinds.append("string")
            if any(isinstance(v, int) for v in definition.values):
                kinds.append("integer")
            return annotate(
                {"type": kinds[0] if len(kinds) == 1 else kinds, "enum": list(definition.values)},
                description=definition.description,
            )
        if isinstance(definition, AliasDef):
            return annotate(self.schema_for(definition.target), description=definition.description)
        if isinstance(definition, UnionDef):
            return annotate(
                {"oneOf": [self.schema_for(v) for v in definition.variants]},
                description=definition.description,
            )
        raise TypeError(f"not a TypeDef: {definition!r}")

    def _render_struct(self, definition: StructDef) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []
        with self._guarded():
            for entry in definition.fields:
                properties[entry.name] = annotate(
                    self.schema_for(entry.type), description=entry.description or None
                )
                if entry.required and not isinstance(entry.type, OptionalType):
                    required.append(entry.name)

        schema: dict[str, Any] = {}
        if definition.description:
            schema["description"] = definition.description
        schema["type"] = "object"
        schema["properties"] = properties
        if required:
            schema["required"] = required
        schema["additionalProperties"] = definition.additional_properties
        return schema

    @contextmanager
    def _guarded(self) -> Iterator[None]:
        self._guard_depth += 1
        try:
            yield
        finally:
            self._guard_depth -= 1


def _children_of(definition: Any) -> list[Any]:
    if isinstance(definition, StructDef):
        return [f.type for f in definition.fields]
    if isinstance(definition, AliasDef):
        return [definition.target]
    if isinstance(definition, UnionDef):
        return list(definition.variants)
    return []


def _shape_of(definition: Any) -> Any:
    """
    Comparable form of a definition. Nested named types keep only their id, so an
    inline definition and a back-reference to the same type compare equal; the
    nested definitions are checked on their own as they are collected.
    """
    return _reduce_named(definition.model_dump())


def _reduce_named(value: Any) -> Any:
    if isinstance(value, dict):
        if value.get("kind") == "named" and "id" in value:
            return {"kind": "named", "id": value["id"]}
        if value.get("kind") == "raw":
            return value
        return {k: _reduce_named(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_reduce_named(v) for v in value]
    return value
