"""
Centralized logging configuration for the matching CLI and workers.

Provides a single setup_logging function that configures:
- Console output (technical format, or message-only user-friendly mode)
- Optional file output to logs/{service_name}.log
- Quieter third-party loggers
"""

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

from crosslink.config import env_bool, env_str

_config_lock = threading.Lock()
_TECHNICAL_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_console_handler(user_friendly: bool) -> logging.Handler:
    if user_friendly:
        formatter = logging.Formatter("%(message)s")
    else:
        formatter = logging.Formatter(_TECHNICAL_FORMAT, _DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.WARNING if user_friendly else logging.DEBUG)
    return console_handler


def _resolve_log_directory() -> Path:
    configured = env_str("CROSSLINK_LOG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path(os.getcwd()) / "logs"


def _build_file_handler(service_name: Optional[str]) -> Optional[logging.Handler]:
    if not service_name:
        return None

    logs_dir = _resolve_log_directory()
    logs_dir.mkdir(parents=True, exist_ok=True)
    file_mode = "a" if env_bool("LOG_APPEND", or_value=False) else "w"

    file_handler = logging.FileHandler(logs_dir / f"{service_name}.log", mode=file_mode)
    file_handler.setFormatter(logging.Formatter(_TECHNICAL_FORMAT, _DATE_FORMAT))
    file_handler.setLevel(logging.INFO)
    return file_handler


def _suppress_noisy_third_parties() -> None:
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("redis.connection").setLevel(logging.WARNING)
    logging.getLogger("redis.asyncio").setLevel(logging.WARNING)


def setup_logging(service_name: Optional[str] = None, user_friendly: bool = False) -> None:
    """Configure root logging; repeated calls replace previous handlers."""

    with _config_lock:
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)

        root_logger.addHandler(_build_console_handler(user_friendly))
        file_handler = _build_file_handler(service_name)
        if file_handler:
            root_logger.addHandler(file_handler)

        level_name = (env_str("LOG_LEVEL", or_value="INFO") or "INFO").upper()
        root_logger.setLevel(getattr(logging, level_name, logging.INFO))
        _suppress_noisy_third_parties()


__all__ = ["setup_logging"]
