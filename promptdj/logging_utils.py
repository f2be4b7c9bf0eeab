from __future__ import annotations

import logging
import os
import platform
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("promptdj.logging")
LOG_DIR_ENV = "PROMPTDJ_LOG_DIR"
DEBUG_ENV = "PROMPTDJ_DEBUG"
LOG_DIR_NAME = "promptdj"
LOG_FILE = "promptdj.log"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def debug_enabled() -> bool:
    return bool(os.environ.get(DEBUG_ENV))


def default_log_dir() -> Path:
    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Logs" / LOG_DIR_NAME
    return Path.home() / f".{LOG_DIR_NAME}" / "logs"


def log_path(filename: str = LOG_FILE, log_dir: str | Path | None = None) -> Path:
    base_dir = Path(log_dir) if log_dir else default_log_dir()
    return base_dir / filename


def setup_file_logger(
    name: str,
    filename: str = LOG_FILE,
    *,
    level: int = logging.INFO,
    log_dir: str | Path | None = None,
) -> Path:
    logger = logging.getLogger(name)
    path = log_path(filename, log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    if any(isinstance(handler, logging.FileHandler) for handler in logger.handlers):
        return path
    logger.setLevel(level)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return path


def configure_logging(level: int = logging.WARNING) -> None:
    """Console logging for the CLI; file logging stays opt-in via ``setup_file_logger``."""
    root = logging.getLogger("promptdj")
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug_enabled() else level)


def log_exception(context: str, exc: BaseException) -> Path | None:
    try:
        path = log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().isoformat()
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{timestamp}] {context} failed: {type(exc).__name__}: {exc}\n")
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
        return path
    except Exception as log_exc:
        _LOGGER.warning("Failed to write log file: %s", log_exc, exc_info=True)
        return None
