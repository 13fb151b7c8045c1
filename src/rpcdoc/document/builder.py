# rpcdoc/document/builder.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from rpcdoc.config.default import OPENRPC_VERSION
from rpcdoc.document.type_mapping import SchemaMapper, attach
from rpcdoc.errors import MapIntegrityError
from rpcdoc.methodmap.models import MethodEntry, MethodMap, NamedType, ParamEntry
from rpcdoc.schemas import (
    Components,
    ContentDescriptor,
    Example,
    ExamplePairing,
    Info,
    Method,
    OpenRpcDocument,
    Server,
    Tag,
)

logger = logging.getLogger("rpcdoc.document")


# ──────────────────────────────────────────────────────────────
# Settings
# ──────────────────────────────────────────────────────────────
class MissingDocs(str, Enum):
    """What to do with a parameter that has no documentation."""

    ERROR = "error"
    EMPTY = "empty"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ServerEntry:
    name: str
    url: str


@dataclass(frozen=True)
class DocumentSettings:
    title: str
    version: str
    description: str | None = None
    servers: tuple[ServerEntry, ...] = ()
    missing_docs: MissingDocs = MissingDocs.ERROR
    openrpc_version: str = OPENRPC_VERSION

    def __post_init__(self):
        # accept plain dicts / strings from config files
        servers = tuple(s if isinstance(s, ServerEntry) else ServerEntry(**s) for s in self.servers)
        object.__setattr__(self, "servers", servers)
        object.__setattr__(self, "missing_docs", MissingDocs(self.missing_docs))


# ──────────────────────────────────────────────────────────────
# Builder
# ──────────────────────────────────────────────────────────────
def split_summary(text: str | None) -> tuple[str | None, str | None]:
    """Return (first line, whole trimmed text); both None for empty docs."""
    if not text or not text.strip():
        return None, None
    description = text.strip()
    return description.split("\n", 1)[0].strip(), description


class DocumentBuilder:
    """
    Assembles an OpenRpcDocument from document settings and a MethodMap.

    The same map and settings always give byte-identical `to_json()` output:
    methods keep declaration order, params keep their positional order and
    component schemas keep first-encounter order.
    """

    def __init__(self, settings: DocumentSettings):
        self.settings = settings

    def build(self, method_map: MethodMap) -> OpenRpcDocument:
        mapper = SchemaMapper(method_map.types)
        mapper.collect(_type_refs(method_map))

        methods = []
        for entry in method_map.values():
            methods.append(self._render_method(mapper, entry))
            logger.debug(f"Rendered method: {entry.name}")

        schemas = mapper.schemas
        logger.info(f"Built OpenRPC document: {len(methods)} methods, {len(schemas)} component schemas")
        return OpenRpcDocument(
            openrpc=self.settings.openrpc_version,
            info=Info(
                title=self.settings.title,
                version=self.settings.version,
                description=self.settings.description,
            ),
            servers=tuple(Server(name=s.name, url=s.url) for s in self.settings.servers),
            methods=tuple(methods),
            components=Components(schemas=schemas),
        )

    # ───── Per-method rendering ─────
    def _render_method(self, mapper: SchemaMapper, entry: MethodEntry) -> Method:
        summary, description = split_summary(entry.description)
        if entry.summary:
            summary = entry.summary.strip()

        params = tuple(self._render_param(mapper, entry, p) for p in entry.params)

        result = None
        if entry.result is not None:
            doc = entry.result.description
            if doc is None and isinstance(entry.result.type, NamedType):
                # fall back to the documentation of the result type itself
                doc = getattr(mapper.definition_of(entry.result.type.id), "description", None)
            result_summary, result_description = split_summary(doc)
            result = ContentDescriptor(
                name=entry.result.name or f"{entry.name}_result",
                summary=result_summary,
                description=result_description,
                schema=mapper.schema_for(entry.result.type),
            )

        return Method(
            name=entry.name,
            summary=summary,
            description=description,
            tags=tuple(Tag(name=t) for t in sorted(entry.tags)),
            params=params,
            result=result,
            deprecated=entry.deprecated,
            paramStructure=entry.param_structure,
            examples=tuple(
                ExamplePairing(
                    name=ex.name,
                    summary=ex.summary,
                    description=ex.description,
                    params=tuple(Example(name=v.name, value=v.value) for v in ex.params),
                    result=Example(name=ex.result.name, value=ex.result.value) if ex.result else None,
                )
                for ex in entry.examples
            ),
        )

    def _render_param(self, mapper: SchemaMapper, method: MethodEntry, param: ParamEntry) -> ContentDescriptor:
        summary, description = split_summary(param.description)
        if description is None:
            if self.settings.missing_docs is MissingDocs.ERROR:
                raise MapIntegrityError(
                    "parameter has no documentation", {"method": method.name, "param": param.name}
                )
            summary, description = "", ""

        schema = mapper.schema_for(param.type)
        if param.has_default:
            schema = attach(schema, {"default": param.default})

        return ContentDescriptor(
            name=param.name,
            summary=summary,
            description=description,
            required=param.is_required,
            schema=schema,
            deprecated=param.deprecated,
        )


def build_document(method_map: MethodMap, settings: DocumentSettings) -> OpenRpcDocument:
    return DocumentBuilder(settings).build(method_map)


def _type_refs(method_map: MethodMap) -> Iterator[Any]:
    for entry in method_map.values():
        for param in entry.params:
            yield param.type
        if entry.result is not None:
            yield entry.result.type
