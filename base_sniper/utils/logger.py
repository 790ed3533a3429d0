from __future__ import annotations
import functools
import inspect
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Level for confirmed on-chain outcomes, between INFO and WARNING
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class _LoggerManager:
    """
    Hands out module loggers. The root logger gets one console handler;
    with ``LOG_TO_FILE`` each module also writes to ``LOG_DIR/<module>.log``,
    rotated at ``LOG_MAX_BYTES`` keeping ``LOG_BACKUP_COUNT`` files.
    """

    def __init__(self) -> None:
        self.level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(self.level, int):
            self.level = logging.INFO
        self.log_dir = Path(os.getenv("LOG_DIR", "./logs"))
        self.to_file = _env_flag("LOG_TO_FILE", "true")
        self.max_bytes = int(os.getenv("LOG_MAX_BYTES", "1048576"))
        self.backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
        self._console_ready = False
        self._file_handlers: dict[str, logging.Handler] = {}

    def _attach_console(self) -> None:
        root = logging.getLogger()
        root.setLevel(self.level)
        if any(isinstance(h, logging.StreamHandler) for h in root.handlers):
            return
        console = logging.StreamHandler()
        console.setLevel(self.level)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, _DATEFMT))
        root.addHandler(console)

    def _file_handler(self, name: str) -> logging.Handler:
        target = self.log_dir / f"{name.replace('.', '_').replace('/', '_')}.log"
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                target, maxBytes=self.max_bytes, backupCount=self.backup_count, encoding="utf-8"
            )
        except OSError:
            # read-only filesystems still get console logging
            return logging.NullHandler()
        handler.setLevel(self.level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, _DATEFMT))
        return handler

    def setup_logger(self, name: str) -> logging.Logger:
        if not self._console_ready:
            self._attach_console()
            self._console_ready = True

        logger = logging.getLogger(name)
        if self.to_file and name not in self._file_handlers:
            handler = self._file_handler(name)
            self._file_handlers[name] = handler
            logger.addHandler(handler)
        return logger


logger_manager = _LoggerManager()


def log_function(func):
    """Trace entry, exit and failures of ``func`` at DEBUG level.

    Works for both plain functions and coroutine functions; exceptions are
    logged and re-raised unchanged.
    """
    name = func.__name__

    def _enter(args, kwargs) -> logging.Logger:
        logger = logger_manager.setup_logger(func.__module__)
        logger.debug(f"→ {name} args={args} kwargs={kwargs}")
        return logger

    def _leave(logger: logging.Logger, started: float) -> None:
        logger.debug(f"← {name} ({(time.perf_counter() - started) * 1000:.1f} ms)")

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = _enter(args, kwargs)
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.exception(f"✗ {name}: {e}")
                raise
            _leave(logger, started)
            return result
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = _enter(args, kwargs)
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"✗ {name}: {e}")
            raise
        _leave(logger, started)
        return result
    return wrapper
