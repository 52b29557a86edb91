"""Logging configuration for the densitypipe package."""

import logging
import sys
from typing import Optional, Sequence, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries whose DEBUG output drowns the per-batch traversal messages
NOISY_LOGGERS = ("h5py", "matplotlib", "PIL")


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Sequence[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure root logging for densitypipe runs.

    Args:
        level: Logging level, as a number or a name such as "DEBUG"
        log_file: Optional path to a log file written alongside the console
        format_string: Optional custom format string for log messages
        quiet_loggers: Third-party loggers held at WARNING regardless of level
    """
    if isinstance(level, str):
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            raise ValueError(f"Unknown logging level: {level}")
        level = numeric_level

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
