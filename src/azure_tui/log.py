"""structlog setup.

The dashboard owns the terminal, so log lines go to a file instead of
stderr.
"""

import logging
from pathlib import Path
from typing import Optional, TextIO, Union

import structlog


LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_log_stream: Optional[TextIO] = None


def configure_logging(log_file: Union[str, Path], level: str = "info") -> Path:
    """Send structlog output to ``log_file`` as key=value lines."""
    global _log_stream

    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    if _log_stream is not None:
        _log_stream.close()
    _log_stream = open(path, "a", encoding="utf-8")

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            LEVELS.get(level.lower(), logging.INFO)
        ),
        logger_factory=structlog.WriteLoggerFactory(file=_log_stream),
        cache_logger_on_first_use=False,
    )
    return path
