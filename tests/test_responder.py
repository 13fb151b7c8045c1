from concurrent.futures import ThreadPoolExecutor

import pytest

from rpcdoc.discovery.responder import DiscoveryResponder, ResponderState
from rpcdoc.document.builder import DocumentBuilder
from rpcdoc.errors import MapIntegrityError
from rpcdoc.methodmap.models import MethodEntry, MethodMap, ParamEntry, primitive


class CountingBuilder(DocumentBuilder):
    def __init__(self, settings):
        super().__init__(settings)
        self.calls = 0

    def build(self, method_map):
        self.calls += 1
        return super().build(method_map)


def test_state_machine(node_map, settings):
    responder = DiscoveryResponder(node_map, settings)
    assert responder.state is ResponderState.UNINITIALIZED

    responder.build()
    assert responder.state is ResponderState.BUILT

    responder.discover()
    assert responder.state is ResponderState.SERVING


def test_document_is_built_once(node_map, settings):
    builder = CountingBuilder(settings)
    responder = DiscoveryResponder(node_map, settings, builder=builder)

    first = responder.discover()
    second = responder.discover()
    responder.build()

    assert builder.calls == 1
    assert first == second == responder.document.to_dict()
    assert responder.rendered == responder.document.to_json()


def test_callers_cannot_mutate_the_shared_document(node_map, settings):
    responder = DiscoveryResponder(node_map, settings)

    result = responder.discover()
    result["methods"].clear()
    result["components"]["schemas"]["InfoResult"]["type"] = "string"

    again = responder.discover()
    assert [m["name"] for m in again["methods"]] == ["getinfo", "getblock"]
    assert again["components"]["schemas"]["InfoResult"]["type"] == "object"


def test_document_property_hands_out_copies(node_map, settings):
    responder = DiscoveryResponder(node_map, settings)
    responder.discover()

    responder.document.components.schemas["InfoResult"]["type"] = "string"
    responder.build().methods[1].params[0].schema_["type"] = "integer"

    assert responder.document.to_dict()["components"]["schemas"]["InfoResult"]["type"] == "object"
    assert responder.document.to_json() == responder.rendered
    assert responder.document.to_dict() == responder.discover()


def test_concurrent_first_use_builds_once(node_map, settings):
    builder = CountingBuilder(settings)
    responder = DiscoveryResponder(node_map, settings, builder=builder)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: responder.discover(), range(32)))

    assert builder.calls == 1
    assert all(r == results[0] for r in results)


def test_build_failure_is_not_cached(settings):
    method_map = MethodMap([
        MethodEntry(name="echo", params=(ParamEntry(name="text", type=primitive("string")),)),
    ])
    responder = DiscoveryResponder(method_map, settings)

    with pytest.raises(MapIntegrityError):
        responder.build()
    assert responder.state is ResponderState.UNINITIALIZED

    with pytest.raises(MapIntegrityError):
        responder.discover()
    assert responder.state is ResponderState.UNINITIALIZED
