"""Centralized logging configuration.

Every entry point configures logging through this module so that console and
file output share one format and third-party libraries stay quiet.

Examples
--------
.. code-block:: python

    import argparse
    from twitch_eventsub.logging.config import add_logging_arguments, setup_logging_from_args

    parser = add_logging_arguments(argparse.ArgumentParser())
    setup_logging_from_args(parser.parse_args(["--log-level", "DEBUG"]))
"""

import argparse
import logging
import logging.config
import pathlib
from typing import Any, Dict, Final, Optional

__all__: list[str] = [
    "DEFAULT_LOG_FORMAT",
    "add_logging_arguments",
    "setup_logging",
    "setup_logging_from_args",
]

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
_LOG_LEVELS: Final[list[str]] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Libraries whose INFO output drowns the listener's own messages
_QUIET_LOGGERS: Final[Dict[str, str]] = {
    "uvicorn": "WARNING",
    "uvicorn.access": "WARNING",
    "uvicorn.error": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
}


def add_logging_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add the shared logging options to ``parser`` and return it."""
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=_LOG_LEVELS,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file in addition to the console",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for log files; relative --log-file paths are placed here",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        help="Log message format (default: %%(asctime)s [%%(levelname)8s] %%(name)s: %%(message)s)",
    )
    return parser


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Configure the root logger and the ``twitch_eventsub`` logger.

    Parameters
    ----------
    level : str
        Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    log_file : Optional[str]
        Optional log file; created along with its directory.
    log_dir : Optional[str]
        Directory for a relative ``log_file``.
    log_format : Optional[str]
        Message format; defaults to :data:`DEFAULT_LOG_FORMAT`.
    """
    level = level.upper()
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "stream": "ext://sys.stderr",
            "level": level,
        }
    }

    if log_file:
        path = pathlib.Path(log_file)
        if log_dir and not path.is_absolute():
            path = pathlib.Path(log_dir) / path
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "filename": str(path),
            "encoding": "utf-8",
            "level": level,
        }

    handler_names = list(handlers)
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": log_format or DEFAULT_LOG_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            "": {"handlers": handler_names, "level": level},
            "twitch_eventsub": {"handlers": handler_names, "level": level, "propagate": False},
        },
    }
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging_config["loggers"][name] = {"handlers": handler_names, "level": quiet_level, "propagate": False}

    logging.config.dictConfig(logging_config)


def setup_logging_from_args(args: Any) -> None:
    """Configure logging from parsed CLI options (argparse namespace or options model)."""
    setup_logging(
        level=getattr(args, "log_level", "INFO") or "INFO",
        log_file=getattr(args, "log_file", None),
        log_dir=getattr(args, "log_dir", None),
        log_format=getattr(args, "log_format", None),
    )
