# rpcdoc/config/default.py
import os

from dotenv import load_dotenv

load_dotenv()

# Defaults for the embedded JSON-RPC server; overridable from the environment or a .env file
HOST: str = os.getenv("RPCDOC_HOST", "127.0.0.1")
PORT: int = int(os.getenv("RPCDOC_PORT", "8000"))
MOUNT_PATH: str = os.getenv("RPCDOC_MOUNT_PATH", "/jsonrpc")
LOG_LEVEL: str = os.getenv("RPCDOC_LOG_LEVEL", "INFO")

# OpenRPC version emitted in every document
OPENRPC_VERSION = "1.3.2"

# Where hoisted named schemas live inside the document
COMPONENTS_SCHEMAS_PATH = "#/components/schemas/"

DISCOVER_METHOD = "rpc.discover"
