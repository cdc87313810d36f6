# shop/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Dict

_configured = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Loggers that stay quiet unless LOG_LEVELS says otherwise.
_NOISY_LOGGERS = ("urllib3",)


def parse_level_overrides(raw: str) -> Dict[str, int]:
    """
    Parse LOG_LEVELS, e.g. ``"shop.sync=DEBUG, searchers=WARNING"``, into
    {logger name: level}. Unknown level names and malformed entries are
    skipped so a typo never stops the daemon from starting.
    """
    overrides: Dict[str, int] = {}
    for entry in (raw or "").split(","):
        name, sep, level_name = entry.partition("=")
        name, level_name = name.strip(), level_name.strip().upper()
        if not sep or not name or not level_name:
            continue
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            continue
        overrides[name] = level
    return overrides


def _file_handler(log_file: str, max_bytes: int, backups: int) -> RotatingFileHandler:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backups,
        encoding="utf-8",
    )


def setup_logging():
    global _configured
    if _configured:
        return

    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    if not isinstance(level, int):
        level = logging.INFO
    overrides = parse_level_overrides(os.getenv("LOG_LEVELS", ""))

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if not root.handlers:
        if os.getenv("LOG_TO_STDOUT", "true").lower() == "true":
            sh = logging.StreamHandler(sys.stdout)
            sh.setFormatter(formatter)
            root.addHandler(sh)

        if os.getenv("LOG_TO_FILE", "true").lower() == "true":
            log_file = os.getenv("LOG_FILE", "/data/price_sync.log")
            try:
                fh = _file_handler(
                    log_file,
                    int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024))),
                    int(os.getenv("LOG_BACKUPS", "5")),
                )
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError as e:
                root.warning("File logging disabled (%s): %s", log_file, e)

    # handlers pass everything; per-logger levels decide what gets through
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    for name, override in overrides.items():
        logging.getLogger(name).setLevel(override)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
