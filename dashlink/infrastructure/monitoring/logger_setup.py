"""Root logger configuration for the dashlink CLI.

Log records go to stderr so they never interleave with command output on
stdout. A log file, when configured, is size-rotated.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_MAX_BYTES = 1_000_000
DEFAULT_BACKUP_COUNT = 3

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def _make_handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """Replaces the root logger's handlers with dashlink's.

    Args:
        log_level: Minimum level for the root logger and its handlers.
        log_format: Format string shared by every handler.
        log_file: Optional path of a rotating log file. A file that cannot
            be opened is reported and skipped; console logging still works.
        max_bytes: Size at which the log file rolls over.
        backup_count: Rolled-over files kept next to the log file.
    """
    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.setLevel(log_level)

    formatter = logging.Formatter(log_format)
    root.addHandler(_make_handler(logging.StreamHandler(sys.stderr), log_level, formatter))

    if log_file:
        try:
            rotating = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
            )
        except OSError as e:
            root.error(f"Cannot write log file {log_file}: {e}")
        else:
            root.addHandler(_make_handler(rotating, log_level, formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    root.debug(
        f"Logging ready: level={logging.getLevelName(log_level)} "
        f"file={log_file or 'none'}"
    )


def level_from_name(name: Optional[str], default: int = DEFAULT_LOG_LEVEL) -> int:
    """'debug' -> logging.DEBUG; unknown names give the default."""
    if not name:
        return default
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default
