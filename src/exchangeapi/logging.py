from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FILE_NAME = "exchangeapi.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Third-party loggers kept at INFO or above even when we run at DEBUG
NOISY_LOGGERS = ("aiohttp", "asyncio")


def _resolve_level() -> int:
    level_name = os.environ.get("EXCHANGEAPI_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(log_dir: Path | None = None) -> None:
    """Send records to the console and, if ``log_dir`` is given, a rotating file.

    ``EXCHANGEAPI_LOG_LEVEL`` picks the level and ``EXCHANGEAPI_LOG_DIR`` overrides
    ``log_dir``. Handlers installed by an earlier call are replaced.
    """
    level = _resolve_level()
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    env_dir = os.environ.get("EXCHANGEAPI_LOG_DIR")
    if env_dir:
        log_dir = Path(env_dir)
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
