"""Pieces of configuration listening: cache entries, wire formats and a scheduler."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Iterable
from urllib.parse import unquote_plus

from .config_types import ConfigListener

logger = logging.getLogger(__name__)

SPLIT_CONFIG = "\u0001"
SPLIT_CONFIG_INNER = "\u0002"
KEY_LISTEN_CONFIGS = "Listening-Configs"
PER_TASK_CONFIG_SIZE = 3000
EXECUTOR_ERROR_DELAY = 5.0
INITIAL_DELAY = 0.001


@dataclass
class CacheData:
    """State of one listened configuration."""

    data_id: str = ""
    group: str = ""
    tenant: str = ""
    content: str = ""
    md5: str = ""
    app_name: str = ""
    task_id: int = 0
    is_initializing: bool = True
    listener: ConfigListener | None = None
    last_md5: str = ""


def build_listening_configs(entries: Iterable[CacheData]) -> str:
    """Return the listening-configs value describing ``entries``."""
    parts = []
    for entry in entries:
        fields = [entry.data_id, entry.group, entry.md5]
        if entry.tenant:
            fields.append(entry.tenant)
        parts.append(SPLIT_CONFIG_INNER.join(fields) + SPLIT_CONFIG)
    return "".join(parts)


def parse_changed_configs(changed: str) -> list[tuple[str, str]]:
    """Return the ``(data_id, group)`` pairs named in a listen response."""
    decoded = unquote_plus(changed)
    result = []
    for config in decoded.split(SPLIT_CONFIG):
        attrs = config.split(SPLIT_CONFIG_INNER)
        if len(attrs) >= 2:
            result.append((attrs[0], attrs[1]))
    return result


def task_count_for(listener_count: int) -> int:
    """Return how many polling tasks serve ``listener_count`` listeners."""
    return math.ceil(listener_count / PER_TASK_CONFIG_SIZE)


class DelayScheduler:
    """Runs a task repeatedly, waiting ``delay`` seconds between runs.

    A run that raises is followed by ``error_delay`` instead.
    """

    def __init__(
        self,
        delay: float,
        task: Callable[[], object],
        error_delay: float = EXECUTOR_ERROR_DELAY,
    ) -> None:
        self.delay = delay
        self.error_delay = error_delay
        self._task = task
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start running the task; does nothing if already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, name="delay-scheduler", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop after the current run."""
        self._stop.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop.is_set()

    def _loop(self) -> None:
        wait = INITIAL_DELAY
        while not self._stop.wait(wait):
            try:
                self._task()
            except Exception as exc:
                logger.error("scheduled task failed: %s", exc)
                wait = self.error_delay
            else:
                wait = self.delay