"""
Logging for the Job Match API.

Every record carries the id of the HTTP request it was emitted under (``-``
outside a request), so the log lines of one match computation, including
those of the cache, vector index and LLM layers, can be grepped together.
"""
import functools
import logging
import logging.config
import os
import time
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMATS = {
    "simple": "%(levelname)s [%(request_id)s] %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(request_id)-36s | %(name)-32s:%(lineno)-4d | %(message)s",
}

# (level, console, file, format) per ENVIRONMENT; LOG_LEVEL overrides the level
ENVIRONMENT_PROFILES = {
    "development": ("DEBUG", True, True, "detailed"),
    "production": ("INFO", True, True, "detailed"),
    "testing": ("WARNING", True, False, "simple"),
}

# Client libraries log every HTTP round trip at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "pymongo", "qdrant_client")


class RequestIdFilter(logging.Filter):
    """Stamp the current request id onto each record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging(
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed",
    log_dir: str = None
) -> None:
    """
    Configure the root logger through ``dictConfig``.

    Args:
        level: Logging level for the service's own loggers
        enable_console: Log to stdout
        enable_file: Log to ``<log_dir>/jobmatch_<date>.log`` plus an errors-only file
        format_style: 'simple' or 'detailed'
        log_dir: Directory for log files (defaults to LOG_DIR or ``logs``)
    """
    log_path = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    day = datetime.now().strftime('%Y%m%d')

    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": format_style,
            "filters": ["request_id"],
            "stream": "ext://sys.stdout",
        }
    if enable_file:
        log_path.mkdir(parents=True, exist_ok=True)
        for name, file_level, suffix in (("file", level, ""), ("error_file", "ERROR", "_errors")):
            handlers[name] = {
                "class": "logging.handlers.RotatingFileHandler",
                "level": file_level,
                "formatter": "detailed",
                "filters": ["request_id"],
                "filename": str(log_path / f"jobmatch{suffix}_{day}.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "encoding": "utf8",
            }

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in LOG_FORMATS.items()
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
        "loggers": {
            # uvicorn's access log duplicates RequestLoggingMiddleware
            "uvicorn.access": {"level": "WARNING"},
            **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        },
    }

    logging.config.dictConfig(config)
    get_logger("logging").info(
        f"Logging configured - Level: {level}, Console: {enable_console}, "
        f"File: {log_path if enable_file else 'disabled'}"
    )


def configure_for_environment() -> None:
    """Pick a logging profile from ENVIRONMENT (unknown values use production)"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    level, console, to_file, style = ENVIRONMENT_PROFILES.get(environment, ENVIRONMENT_PROFILES["production"])
    setup_logging(
        level=os.getenv("LOG_LEVEL", level).upper(),
        enable_console=console,
        enable_file=to_file,
        format_style=style,
    )


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under ``jobmatch.``"""
    if name.startswith("jobmatch."):
        return logging.getLogger(name)
    return logging.getLogger(f"jobmatch.{name}")


def log_api_call(operation: str):
    """Log start, duration and failure of a route handler"""
    def decorator(func):
        logger = get_logger(f"api.{operation}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(f"{operation} started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(f"{operation} failed after {time.time() - start_time:.3f}s: {e}")
                raise
            logger.info(f"{operation} completed in {time.time() - start_time:.3f}s")
            return result

        return wrapper
    return decorator


class PerformanceMonitor:
    """Time a block; warn when it runs past ``threshold_ms``"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.start_time = None
        self.elapsed_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.warning(f"{self.operation_name} failed after {self.elapsed_ms:.0f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation_name} took {self.elapsed_ms:.0f}ms (threshold {self.threshold_ms:.0f}ms)")
        else:
            self.logger.info(f"{self.operation_name} took {self.elapsed_ms:.0f}ms")
        return False
