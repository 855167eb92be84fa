"""JSON-RPC tool dispatch and registry publication."""

from agentrpc.rpc.bridge import RegistryPublisher
from agentrpc.rpc.dispatcher import ToolDispatcher, parse_json_rpc
from agentrpc.rpc.tools import register_all_example_tools, register_namespace

__all__ = [
    "RegistryPublisher",
    "ToolDispatcher",
    "parse_json_rpc",
    "register_all_example_tools",
    "register_namespace",
]
