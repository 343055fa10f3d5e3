"""Shared utilities package for the rhoas CLI"""

from .debug_console import (
    DebugCapturingConsole,
    configure_logging,
    create_debug_console,
    setup_debug_logger,
)
from .http_logging import LoggingTransport, redact_headers

__all__ = [
    "DebugCapturingConsole",
    "configure_logging",
    "create_debug_console",
    "setup_debug_logger",
    "LoggingTransport",
    "redact_headers",
]
