"""Debug-level handling for Obsidian Parser.

The tool speaks in debug levels 0-3. Level 0 shows warnings and errors only,
1 adds progress summaries, 2 adds per-file detail and 3 adds directory
scanning and per-variant traces.
"""

import logging
from typing import Optional

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: TRACE,
}


def level_for_debug(debug: int) -> int:
    """Map a 0-3 debug level onto a logging level.

    Out of range values are clamped.
    """
    debug = max(0, min(3, int(debug)))
    return _LEVELS[debug]


def configure_logging(debug: int = 1, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Attach a handler to the package logger at the given debug level.

    Args:
        debug: Debug level 0-3
        handler: Handler to install (default: a plain stderr StreamHandler)

    Returns:
        The package logger
    """
    logger = logging.getLogger("obsidian_parser")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    if handler is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level_for_debug(debug))
    logger.propagate = False
    return logger
