"""Block trace ingestion."""

from blocktrace.services.ingestion.service import BlockTraceService
from blocktrace.services.ingestion.source import TraceSource

__all__ = ["BlockTraceService", "TraceSource"]
