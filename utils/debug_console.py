"""Console and log setup for debug mode.

In debug mode all log records are appended to a debug log file and echoed to
stderr, and everything printed to the Rich console is mirrored into the same
file as plain text.
"""

import logging
import os
from typing import Optional

from rich.console import Console

CONSOLE_LOGGER_NAME = "debug_console"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_LOG_PREFIX = "[CONSOLE] "

# Libraries that are too chatty at DEBUG
QUIET_LOGGERS = ("httpcore", "aiohttp.access", "asyncio")


class DebugCapturingConsole(Console):
    """
    Rich Console that copies what it prints into a logger.

    Output is recorded by Rich itself and exported as plain text after each
    print, so the logged copy matches the terminal without styling.
    """

    def __init__(self, capture_logger: logging.Logger, **kwargs):
        kwargs["record"] = True
        super().__init__(**kwargs)
        self.capture_logger = capture_logger

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        text = self.export_text(clear=True, styles=False).rstrip()
        if text.strip() and self.capture_logger.isEnabledFor(logging.DEBUG):
            for line in text.splitlines():
                self.capture_logger.debug(f"{CONSOLE_LOG_PREFIX}{line}")


def create_debug_console(debug_enabled: bool = False,
                         debug_logger: Optional[logging.Logger] = None) -> Console:
    """
    Create the console for the current mode.

    Returns:
        DebugCapturingConsole when debug is enabled and a capture logger is
        given, a plain Console otherwise
    """
    if debug_enabled and debug_logger is not None:
        return DebugCapturingConsole(debug_logger)
    return Console()


def setup_debug_logger(log_file: str) -> logging.Logger:
    """
    Set up the logger that receives captured console output.

    Args:
        log_file: Path to debug log file

    Returns:
        The capture logger, writing only to log_file
    """
    capture_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    capture_logger.setLevel(logging.DEBUG)
    _replace_handlers(capture_logger)

    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s"))
    capture_logger.addHandler(handler)

    # Console lines are already on the terminal
    capture_logger.propagate = False
    return capture_logger


def _replace_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        target.removeHandler(handler)
        handler.close()


def configure_logging(debug: bool, log_file: str) -> Optional[logging.Logger]:
    """
    Configure the root logger.

    Without debug only warnings and errors reach stderr. With debug, DEBUG
    records go to stderr and are appended to log_file.

    Args:
        debug: Whether debug mode is enabled
        log_file: Path to debug log file

    Returns:
        The console capture logger in debug mode, None otherwise
    """
    root_logger = logging.getLogger()
    _replace_handlers(root_logger)

    stderr_handler = logging.StreamHandler()
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stderr_handler)

    if not debug:
        root_logger.setLevel(logging.WARNING)
        return None

    log_file = os.path.abspath(log_file)
    root_logger.setLevel(logging.DEBUG)
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    root_logger.info(f"Debug logging enabled, appending to {log_file}")
    return setup_debug_logger(log_file)
