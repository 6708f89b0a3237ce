"""JSON-RPC trace source."""

from blocktrace.services.rpc.client import TraceRPCClient

__all__ = ["TraceRPCClient"]
