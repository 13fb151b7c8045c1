import json

import pytest

from rpcdoc.document.builder import DocumentBuilder, DocumentSettings, MissingDocs, ServerEntry, build_document, split_summary
from rpcdoc.errors import MapIntegrityError, SchemaCycleUnresolved, SerializationError
from rpcdoc.methodmap.models import (
    AliasDef,
    ExamplePairing,
    ExampleValue,
    MethodEntry,
    MethodMap,
    ParamEntry,
    ResultEntry,
    array_of,
    field,
    named,
    optional,
    primitive,
    raw,
    struct,
)
from rpcdoc.schemas import OpenRpcDocument


def _refs(node):
    """Every $ref value in a JSON tree."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref":
                yield value
            else:
                yield from _refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _refs(item)


def test_node_scenario(node_map, settings):
    doc = build_document(node_map, settings).to_dict()

    assert doc["openrpc"] == "1.3.2"
    assert doc["info"] == {"title": "Test API", "version": "1.0"}
    assert "servers" not in doc
    assert [m["name"] for m in doc["methods"]] == ["getinfo", "getblock"]
    assert list(doc["components"]["schemas"]) == ["InfoResult", "BlockResult"]

    getblock = doc["methods"][1]
    assert getblock["summary"] == "Returns a block."
    assert getblock["description"] == "Returns a block.\n\nLooks the block up by hash."
    assert getblock["params"] == [
        {
            "name": "hash",
            "summary": "Block hash.",
            "description": "Block hash.",
            "required": True,
            "schema": {"type": "string"},
        },
    ]
    assert getblock["result"] == {
        "name": "getblock_result",
        "summary": "A block.",
        "description": "A block.",
        "schema": {"$ref": "#/components/schemas/BlockResult"},
    }


def test_output_is_deterministic(node_map, settings):
    first = build_document(node_map, settings).to_json()
    second = DocumentBuilder(settings).build(node_map).to_json()
    assert first == second


def test_shared_type_is_hoisted_once(settings):
    shared = named("Shared", struct(field("id", primitive("string"), "Identifier.")))
    method_map = MethodMap([
        MethodEntry(name="get", result=ResultEntry(type=shared, description="The thing.")),
        MethodEntry(
            name="put",
            params=(ParamEntry(name="thing", type=named("Shared"), description="The thing."),),
            result=ResultEntry(type=array_of(named("Shared")), description="All things."),
        ),
        MethodEntry(
            name="maybe",
            params=(ParamEntry(name="thing", type=optional(named("Shared")), description="The thing."),),
        ),
    ])

    doc = build_document(method_map, settings).to_dict()

    assert list(doc["components"]["schemas"]) == ["Shared"]
    assert list(_refs(doc["methods"])) == ["#/components/schemas/Shared"] * 4
    methods_text = json.dumps(doc["methods"])
    assert '"properties"' not in methods_text


def test_self_referencing_type_builds(settings):
    node = named("Node", struct(field("children", array_of(named("Node")), "Child nodes.")))
    method_map = MethodMap([MethodEntry(name="tree", result=ResultEntry(type=node, description="Root."))])

    doc = build_document(method_map, settings).to_dict()

    assert doc["components"]["schemas"]["Node"]["properties"]["children"] == {
        "description": "Child nodes.",
        "type": "array",
        "items": {"$ref": "#/components/schemas/Node"},
    }


def test_self_contained_methods_share_recursive_types(settings):
    method_map = MethodMap([
        MethodEntry(
            name="m1",
            result=ResultEntry(
                type=named("A", struct(field("b", named("B", struct(field("a", optional(named("A")))))))),
                description="An A.",
            ),
        ),
        MethodEntry(
            name="m2",
            result=ResultEntry(
                type=named("B", struct(field("a", optional(named("A", struct(field("b", named("B")))))))),
                description="A B.",
            ),
        ),
    ])

    doc = build_document(method_map, settings).to_dict()

    assert list(doc["components"]["schemas"]) == ["A", "B"]
    assert doc["methods"][1]["result"]["schema"] == {"$ref": "#/components/schemas/B"}


def test_divergent_type_identifier_fails(settings):
    method_map = MethodMap([
        MethodEntry(name="a", result=ResultEntry(type=named("Dup", struct(field("x", primitive("string")))))),
        MethodEntry(name="b", result=ResultEntry(type=named("Dup", struct(field("x", primitive("uint8")))))),
    ])
    with pytest.raises(MapIntegrityError):
        build_document(method_map, settings)


def test_catalog_and_inline_definitions_must_agree(settings):
    method_map = MethodMap(
        [MethodEntry(name="a", result=ResultEntry(type=named("T", AliasDef(target=primitive("string")))))],
        types={"T": AliasDef(target=primitive("integer"))},
    )
    with pytest.raises(MapIntegrityError):
        build_document(method_map, settings)


def test_unresolvable_cycle_fails(settings):
    method_map = MethodMap([
        MethodEntry(name="a", result=ResultEntry(type=named("A", AliasDef(target=named("B", AliasDef(target=named("A"))))))),
    ])
    with pytest.raises(SchemaCycleUnresolved):
        build_document(method_map, settings)


def test_undocumented_param_policy():
    method_map = MethodMap([
        MethodEntry(name="echo", params=(ParamEntry(name="text", type=primitive("string")),)),
    ])

    with pytest.raises(MapIntegrityError) as exc:
        build_document(method_map, DocumentSettings(title="t", version="1"))
    assert exc.value.details == {"method": "echo", "param": "text"}

    doc = build_document(method_map, DocumentSettings(title="t", version="1", missing_docs="empty")).to_dict()
    assert doc["methods"][0]["params"][0] == {
        "name": "text",
        "summary": "",
        "description": "",
        "required": True,
        "schema": {"type": "string"},
    }


def test_notification_shaped_method(settings):
    method_map = MethodMap([MethodEntry(name="ping")])
    method = build_document(method_map, settings).to_dict()["methods"][0]
    assert method == {"name": "ping", "params": []}


def test_method_metadata(settings):
    method_map = MethodMap([
        MethodEntry(
            name="old",
            summary="Short.",
            description="Long text.",
            deprecated=True,
            tags=frozenset({"zeta", "alpha"}),
            param_structure="by-position",
            params=(
                ParamEntry(name="count", type=optional(primitive("uint32")), description="How many.", default=10),
                ParamEntry(name="mode", type=named("Mode", AliasDef(target=primitive("string"))),
                           description="Mode.", required=False, default="fast", deprecated=True),
            ),
        ),
    ])

    method = build_document(method_map, settings).to_dict()["methods"][0]

    assert method["summary"] == "Short."
    assert method["description"] == "Long text."
    assert method["deprecated"] is True
    assert method["tags"] == [{"name": "alpha"}, {"name": "zeta"}]
    assert method["paramStructure"] == "by-position"
    count, mode = method["params"]
    assert "required" not in count
    assert count["schema"] == {"default": 10, "type": ["integer", "null"], "format": "uint32", "minimum": 0}
    assert mode["deprecated"] is True
    assert mode["schema"] == {"default": "fast", "allOf": [{"$ref": "#/components/schemas/Mode"}]}


def test_examples_keep_null_values(settings):
    method_map = MethodMap([
        MethodEntry(
            name="lookup",
            params=(ParamEntry(name="key", type=primitive("string"), description="Key."),),
            result=ResultEntry(type=optional(primitive("string")), description="Value, if any."),
            examples=(
                ExamplePairing(
                    name="miss",
                    params=(ExampleValue(name="key", value="nope"),),
                    result=ExampleValue(name="lookup_result", value=None),
                ),
            ),
        ),
    ])

    method = build_document(method_map, settings).to_dict()["methods"][0]

    assert method["examples"] == [
        {
            "name": "miss",
            "params": [{"name": "key", "value": "nope"}],
            "result": {"name": "lookup_result", "value": None},
        },
    ]


def test_info_and_servers():
    settings = DocumentSettings(
        title="Wallet",
        version="2.1.0",
        description="Wallet RPC.",
        servers=(ServerEntry("main", "http://127.0.0.1:8232"), {"name": "test", "url": "http://127.0.0.1:18232"}),
    )
    doc = build_document(MethodMap(), settings).to_dict()

    assert doc["info"] == {"title": "Wallet", "description": "Wallet RPC.", "version": "2.1.0"}
    assert doc["servers"] == [
        {"name": "main", "url": "http://127.0.0.1:8232"},
        {"name": "test", "url": "http://127.0.0.1:18232"},
    ]
    assert doc["methods"] == []
    assert doc["components"] == {"schemas": {}}


def test_settings_normalize_missing_docs():
    assert DocumentSettings(title="t", version="1", missing_docs="empty").missing_docs is MissingDocs.EMPTY
    with pytest.raises(ValueError):
        DocumentSettings(title="t", version="1", missing_docs="ignore")


def test_wire_round_trip(node_map, settings):
    text = build_document(node_map, settings).to_json()
    parsed = OpenRpcDocument.from_json(text)

    assert len(parsed.methods) == len(node_map)
    assert {m.name for m in parsed.methods} == set(node_map)
    for method in parsed.methods:
        assert [p.name for p in method.params] == [p.name for p in node_map[method.name].params]
    assert parsed.to_json() == text


def test_unserializable_raw_fragment(settings):
    method_map = MethodMap([
        MethodEntry(name="bad", result=ResultEntry(type=raw({"default": object()}), description="x")),
    ])
    with pytest.raises(SerializationError):
        build_document(method_map, settings).to_json()


@pytest.mark.parametrize(
    "text, expected",
    [
        (None, (None, None)),
        ("   ", (None, None)),
        ("One line.", ("One line.", "One line.")),
        ("  First.\nSecond.\n", ("First.", "First.\nSecond.")),
    ],
)
def test_split_summary(text, expected):
    assert split_summary(text) == expected


def test_explicit_null_default_is_rendered(settings):
    method_map = MethodMap([
        MethodEntry(
            name="find",
            params=(
                ParamEntry(name="label", type=optional(primitive("string")), description="Label.", default=None),
                ParamEntry(name="limit", type=optional(primitive("uint8")), description="Limit."),
            ),
        ),
    ])

    label, limit = build_document(method_map, settings).to_dict()["methods"][0]["params"]

    assert label["schema"] == {"default": None, "type": ["string", "null"]}
    assert "default" not in limit["schema"]
