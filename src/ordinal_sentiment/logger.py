# logger.py
"""
Loguru setup for experiment runs.

Library modules log through ``from loguru import logger`` directly; only the
runner calls ``configure`` to decide where the records go.
"""
import os
import sys
from functools import wraps
from time import perf_counter
from typing import Callable, Optional

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {thread.name} | {name}:{function}:{line} | {message}"


def configure(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    rotation: str = "1 day",
    retention: str = "30 days",
    console: bool = True,
) -> None:
    """
    Replaces every installed sink.

    Args:
        level: Minimum level of both sinks
        log_dir: Directory of the rotating file sink; no file sink when None
        rotation: Loguru rotation policy of the file sink
        retention: Loguru retention policy of the file sink
        console: Whether to log to stderr
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logger.add(
            sink=os.path.join(log_dir, "{time:YYYY-MM-DD}.log"),
            rotation=rotation,
            retention=retention,
            level=level,
            format=FILE_FORMAT,
            enqueue=True,  # folds log from worker threads
            backtrace=True,
            diagnose=False,
        )

    logger.debug("Logger configured (level={}, log_dir={})", level, log_dir)


def timed(name: Optional[str] = None) -> Callable:
    """Logs the wall time of the decorated call at INFO."""

    def decorator(func: Callable):
        label = name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                logger.info("[TIME] {} took {:.2f}s", label, perf_counter() - start)

        return wrapper

    return decorator
