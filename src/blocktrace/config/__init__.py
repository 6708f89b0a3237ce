"""Configuration module for BlockTrace.

Usage:
    from blocktrace.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.rpc_url)

Note:
    Components accept an explicit Settings instance; get_settings() is
    only the default when none is passed.
"""

from blocktrace.config.logging import configure_logging, get_logger
from blocktrace.config.settings import Settings, get_settings

__all__ = ["Settings", "configure_logging", "get_logger", "get_settings"]
