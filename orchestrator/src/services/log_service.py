"""Logging configuration and per-task log helpers."""

import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class SizeAndTimeRotatingHandler(TimedRotatingFileHandler):
    """Log handler that rotates at midnight or once the file grows too large."""

    def __init__(self, filename, max_bytes, backup_count=0, **kwargs):
        self.max_bytes = max_bytes
        super().__init__(filename, backupCount=backup_count, **kwargs)

    def shouldRollover(self, record):
        if int(time.time()) >= self.rolloverAt:
            return 1

        if self.stream and self.max_bytes > 0:
            self.stream.seek(0, os.SEEK_END)
            if self.stream.tell() >= self.max_bytes:
                return 1

        return 0

    def doRollover(self):
        super().doRollover()
        self.rolloverAt = self.computeRollover(int(time.time()))


class TaskLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the task type, e.g. ``[polygonArea] ...``."""

    def process(self, msg, kwargs):
        return f"[{self.extra['task_type']}] {msg}", kwargs


def task_logger(logger: logging.Logger, task_type: str) -> TaskLogAdapter:
    """Wrap an injected logger so its records carry the task type."""
    if logger is None:
        raise ValueError("logger is required")
    return TaskLogAdapter(logger, {"task_type": task_type})


def configure_logging(
    process_name: str,
    level: str = "info",
    log_dir: str | None = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 7,
    console: bool = True,
) -> logging.Logger:
    """Route root logging to ``<log_dir>/<process_name>.log`` and the console.

    Args:
        process_name: Names the log file, e.g. ``"worker_daemon"``.
        level: Level name such as ``"debug"`` or ``"info"``.
        log_dir: Defaults to ``$LOG_DIR``, then ``logs``.
        max_bytes: File size that forces a rollover before midnight.
        backup_count: Rotated files kept.
        console: Also log to stderr.

    Returns:
        The root logger.
    """
    log_dir = log_dir or os.environ.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    handlers: list[logging.Handler] = [
        SizeAndTimeRotatingHandler(
            filename=os.path.join(log_dir, f"{process_name}.log"),
            when="midnight",
            max_bytes=max_bytes,
            backup_count=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root
