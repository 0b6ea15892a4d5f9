"""
Logging setup for the command line and for process-pool workers.

Worker processes send their records through a multiprocessing queue; a
listener thread in the parent re-emits them through the parent's loggers.
"""
from __future__ import annotations

import logging
import multiprocessing
import sys
import threading
from logging.handlers import QueueHandler
from queue import Empty
from typing import Optional, TextIO, Union

LOG_FORMAT = "%(message)s"
VERBOSE_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.WARNING, stream: Optional[TextIO] = None) -> None:
    """
    Configure the root logger for command-line use.

    Args:
        level: Level name ("DEBUG", "info", ...) or number
        stream: Output stream (stderr by default, so stdout stays clean for JSON)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {level!r}")
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT if level <= logging.DEBUG else LOG_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


# =============================================================================
# Multiprocessing Logging Support
# =============================================================================

def configure_worker_logging(mp_log_queue: multiprocessing.Queue, level: int = logging.DEBUG) -> None:
    """
    Configure logging in a child process to send logs to a multiprocessing queue.

    Call this as the initializer for ProcessPoolExecutor.

    Example:
        >>> with ProcessPoolExecutor(
        ...     max_workers=4,
        ...     initializer=configure_worker_logging,
        ...     initargs=(mp_log_queue, logging.INFO),
        ... ) as executor:
        ...     # workers will send logs to mp_log_queue
    """
    root = logging.getLogger()
    root.handlers = []
    root.addHandler(QueueHandler(mp_log_queue))
    root.setLevel(level)


def start_log_listener(
    mp_log_queue: multiprocessing.Queue,
    stop_event: threading.Event,
) -> threading.Thread:
    """
    Start a thread that re-emits worker records in this process.

    The thread exits when stop_event is set (after draining) or when it
    receives None.

    Example:
        >>> stop_event = threading.Event()
        >>> listener = start_log_listener(mp_queue, stop_event)
        >>> # ... do work ...
        >>> stop_event.set()
        >>> listener.join()
    """
    def _listener():
        while True:
            try:
                record = mp_log_queue.get(timeout=0.1)
            except Empty:
                if stop_event.is_set():
                    break
                continue
            if record is None:  # Sentinel value
                break
            logger = logging.getLogger(record.name)
            if logger.isEnabledFor(record.levelno):
                logger.handle(record)

    thread = threading.Thread(target=_listener, name="worker-log-listener", daemon=True)
    thread.start()
    return thread
