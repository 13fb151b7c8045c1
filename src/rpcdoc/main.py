# rpcdoc/main.py
# Demo billing server: a hand-written method map next to the handlers it describes.
import uuid
from datetime import datetime, timezone

from rpcdoc.methodmap.models import (
    EnumDef,
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
    struct,
)
from rpcdoc.server.registry import RPCMethodRegistry

# Parameter docs live in one place, like constants the front end reads
PARAM_CLIENT_DESC = "Name of the client being billed."
PARAM_AMOUNT_DESC = "Amount to bill, in the smallest currency unit."
PARAM_INVOICE_ID_DESC = "Identifier returned by create_invoice."
PARAM_STATUS_DESC = "Only list invoices in this state.\nLists every invoice when omitted."

INVOICE_STATUS = named("InvoiceStatus", EnumDef(description="Lifecycle state of an invoice.", values=("open", "paid")))
INVOICE = named(
    "Invoice",
    struct(
        field("id", primitive("string"), "Invoice identifier."),
        field("client", primitive("string"), "Billed client."),
        field("amount", primitive("uint64"), "Billed amount."),
        field("status", INVOICE_STATUS),
        field("created_at", primitive("string"), "Creation time, RFC 3339."),
        field("paid_at", optional(primitive("string")), "Payment time, RFC 3339."),
        description="An invoice issued to a client.",
    ),
)

METHOD_MAP = MethodMap([
    MethodEntry(
        name="create_invoice",
        description="Create an invoice.\n\nThe new invoice starts in the `open` state.",
        params=(
            ParamEntry(name="client", type=primitive("string"), description=PARAM_CLIENT_DESC),
            ParamEntry(name="amount", type=primitive("uint64"), description=PARAM_AMOUNT_DESC),
        ),
        result=ResultEntry(type=INVOICE),
        tags=frozenset({"billing"}),
        examples=(
            ExamplePairing(
                name="small invoice",
                params=(ExampleValue(name="client", value="acme"), ExampleValue(name="amount", value=1200)),
            ),
        ),
    ),
    MethodEntry(
        name="get_invoice",
        description="Get an invoice by id.",
        params=(ParamEntry(name="invoice_id", type=primitive("string"), description=PARAM_INVOICE_ID_DESC),),
        result=ResultEntry(type=named("Invoice")),
        tags=frozenset({"billing"}),
    ),
    MethodEntry(
        name="list_invoices",
        description="List invoices, oldest first.",
        params=(ParamEntry(name="status", type=optional(named("InvoiceStatus")), description=PARAM_STATUS_DESC),),
        result=ResultEntry(type=array_of(named("Invoice")), description="Matching invoices."),
        tags=frozenset({"billing"}),
    ),
    MethodEntry(
        name="pay_invoice",
        description="Mark an invoice as paid.",
        params=(ParamEntry(name="invoice_id", type=primitive("string"), description=PARAM_INVOICE_ID_DESC),),
        tags=frozenset({"billing"}),
    ),
])

settings = {
    "host": "127.0.0.1",
    "port": 8002,
    "mount_path": "/jsonrpc",
}

rpc = RPCMethodRegistry(
    name="billing",
    settings=settings,
    method_map=METHOD_MAP,
    document_settings={
        "title": "Billing API",
        "version": "1.0.0",
        "description": "Demo invoice service.",
        "servers": [{"name": "local", "url": "http://127.0.0.1:8002/jsonrpc"}],
    },
)

# Simple in-memory DB (demo only)
INVOICES: dict[str, dict] = {}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@rpc.register("create_invoice")
def create_invoice(client: str, amount: int) -> dict:
    if not isinstance(amount, int) or amount < 0:
        raise ValueError("Invalid amount")
    invoice = {
        "id": str(uuid.uuid4()),
        "client": client,
        "amount": amount,
        "status": "open",
        "created_at": _now(),
        "paid_at": None,
    }
    INVOICES[invoice["id"]] = invoice
    return invoice


@rpc.register("get_invoice")
def get_invoice(invoice_id: str) -> dict:
    inv = INVOICES.get(invoice_id)
    if not inv:
        raise ValueError("invoice not found")
    return inv


@rpc.register("list_invoices")
def list_invoices(status: str | None = None) -> list:
    return [inv for inv in INVOICES.values() if status is None or inv["status"] == status]


@rpc.register("pay_invoice")
async def pay_invoice(invoice_id: str) -> None:
    inv = INVOICES.get(invoice_id)
    if inv and inv["status"] == "open":
        inv["status"] = "paid"
        inv["paid_at"] = _now()


if __name__ == "__main__":
    rpc.run()
