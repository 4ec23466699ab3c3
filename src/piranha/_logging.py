import logging

from rich.logging import RichHandler

LOGGER_NAME = "piranha"

# Indexed by the number of -v flags on the command line
VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def verbosity_to_level(verbose: int) -> int:
    """Map a count of -v flags to a logging level, saturating at DEBUG."""
    return VERBOSITY_LEVELS[min(max(verbose, 0), len(VERBOSITY_LEVELS) - 1)]


def set_log_level(level: int) -> None:
    """Route this package's log records to stderr at ``level`` and above."""
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
