import pytest

from rpcdoc.document.builder import DocumentSettings
from rpcdoc.methodmap.models import (
    MethodEntry,
    MethodMap,
    ParamEntry,
    ResultEntry,
    array_of,
    field,
    named,
    primitive,
    struct,
)


@pytest.fixture
def settings() -> DocumentSettings:
    return DocumentSettings(title="Test API", version="1.0")


@pytest.fixture
def node_map() -> MethodMap:
    """getinfo / getblock, the smallest map with two named result types."""
    info = named(
        "InfoResult",
        struct(
            field("version", primitive("uint32"), "Server version."),
            field("blocks", primitive("uint64"), "Current height."),
            description="Node information.",
        ),
    )
    block = named(
        "BlockResult",
        struct(
            field("hash", primitive("string"), "Block hash."),
            field("height", primitive("uint64"), "Block height."),
            field("tx", array_of(primitive("string")), "Transaction ids."),
            description="A block.",
        ),
    )
    return MethodMap([
        MethodEntry(name="getinfo", description="Returns node information.", result=ResultEntry(type=info)),
        MethodEntry(
            name="getblock",
            description="Returns a block.\n\nLooks the block up by hash.",
            params=(ParamEntry(name="hash", type=primitive("string"), description="Block hash.", required=True),),
            result=ResultEntry(type=block),
        ),
    ])
