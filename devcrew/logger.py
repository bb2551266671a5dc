"""Logging setup for devcrew runs.

The console stays terse; the rotating log file records every worker and
team thread so a parallel multi-team run can be untangled afterwards.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

__all__ = ["setup_logger", "get_logger", "resolve_log_path"]

LOG_FILE_ENV = "DEVCREW_LOG_FILE"
DEFAULT_LOG_FILE = Path("~/.devcrew/logs/devcrew.log").expanduser()
CONSOLE_FORMAT = "[%(levelname).1s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 3

# Chatty at INFO; only their warnings are worth keeping.
QUIET_LIBRARIES = ("litellm", "LiteLLM", "httpx", "httpcore", "openai")


def setup_logger(
    name: str = "devcrew",
    verbose: bool = False,
    log_file: Union[str, Path, bool, None] = None,
) -> logging.Logger:
    """Configure the ``devcrew`` logger tree for one run.

    Args:
        name: Root of the logger tree; module loggers hang below it.
        verbose: ``True`` shows INFO on the console; otherwise WARNING+.
            The log file always records INFO.
        log_file: File logging target, see ``resolve_log_path``.
    """
    logger = logging.getLogger(name)
    console_level = logging.INFO if verbose else logging.WARNING

    # setup_logger may run more than once per process (tests, repeated CLI calls).
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.INFO)
    logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    log_path = resolve_log_path(log_file)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    for library in QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name without changing its configuration."""
    return logging.getLogger(name)


def resolve_log_path(log_file: Union[str, Path, bool, None]) -> Optional[Path]:
    """Translate a ``log_file`` setting into a path, or None to disable file logging.

    - ``False``: no file logging
    - ``None`` or ``True``: ``$DEVCREW_LOG_FILE`` when set ("off" disables),
      else ``~/.devcrew/logs/devcrew.log``
    - ``str``/``Path``: that file
    """
    if log_file is False:
        return None
    if log_file is None or log_file is True:
        from_env = os.environ.get(LOG_FILE_ENV, "").strip()
        if from_env.lower() in ("off", "none", "0", "false"):
            return None
        return Path(from_env).expanduser() if from_env else DEFAULT_LOG_FILE
    return Path(log_file).expanduser()
