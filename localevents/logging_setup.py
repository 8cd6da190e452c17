"""
Central logging configuration for localevents.

Keeps cache diagnostics visible while quieting the chatty third-party
libraries used for downloads and storage.
"""

import logging
import os
from typing import Optional

from . import _init_logging

NOISY_LIBRARIES = ("httpx", "httpcore", "aiosqlite", "asyncio")


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for localevents.

    Args:
        debug_mode: Whether to enable debug logging for localevents modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        LOCALEVENTS_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        LOCALEVENTS_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("LOCALEVENTS_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("LOCALEVENTS_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = "DEBUG" if final_debug else "INFO"
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = env_log_level

    _init_logging(root_level)
    # _init_logging promotes to DEBUG on LOCALEVENTS_DEBUG; an explicit override wins.
    if force_debug is False:
        logging.getLogger().setLevel(getattr(logging, root_level))

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("localevents").setLevel(
        logging.DEBUG if final_debug else logging.getLogger().level
    )

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s debug=%s", root_level, final_debug
    )
