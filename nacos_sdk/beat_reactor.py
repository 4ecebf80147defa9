"""Sends periodic heartbeats for registered ephemeral instances."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Protocol

from .concurrent_map import ConcurrentMap
from .naming_types import NAMING_INSTANCE_ID_SPLITTER, BeatInfo, BeatState

logger = logging.getLogger(__name__)

DEFAULT_BEAT_THREAD_NUM = 20


class BeatSender(Protocol):
    def send_beat(self, info: BeatInfo) -> int: ...


def build_key(service_name: str, ip: str, port: int) -> str:
    """Return the key identifying the heartbeat of one instance."""
    return NAMING_INSTANCE_ID_SPLITTER.join((service_name, ip, str(int(port))))


class BeatReactor:
    """Runs one heartbeat loop per instance, at most 20 sending at once."""

    def __init__(self, proxy: BeatSender, client_beat_interval: int = 5000) -> None:
        if client_beat_interval <= 0:
            client_beat_interval = 5 * 1000
        self._proxy = proxy
        self.client_beat_interval = client_beat_interval
        self._beats = ConcurrentMap()
        self._records = ConcurrentMap()
        self._wakers = ConcurrentMap()
        self._semaphore = threading.BoundedSemaphore(DEFAULT_BEAT_THREAD_NUM)
        self._closed = threading.Event()
        self._threads: list[threading.Thread] = []
        self._threads_lock = threading.Lock()

    def add_beat_info(self, service_name: str, beat_info: BeatInfo) -> None:
        """Store a copy of ``beat_info`` and start beating for it."""
        if self._closed.is_set():
            raise RuntimeError("beat reactor is closed")
        logger.info("adding beat: <%s> to beat map", beat_info.to_json())
        info = dataclasses.replace(beat_info, metadata=dict(beat_info.metadata))
        key = build_key(service_name, info.ip, info.port)
        waker = threading.Event()
        self._beats.set(key, info)
        self._wakers.set(key, waker)
        thread = threading.Thread(
            target=self._run, args=(key, info, waker), name=f"beat-{key}", daemon=True
        )
        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def remove_beat_info(self, service_name: str, ip: str, port: int) -> None:
        """Stop beating for an instance."""
        logger.info("remove beat: %s@%s:%d from beat map", service_name, ip, port)
        key = build_key(service_name, ip, port)
        info = self._beats.pop(key, None)
        if info is not None:
            info.state = BeatState.SHUTDOWN
        waker = self._wakers.pop(key, None)
        if waker is not None:
            waker.set()

    def get_beat_info(self, key: str) -> BeatInfo | None:
        return self._beats.get(key)

    def count(self) -> int:
        return self._beats.count()

    def close(self) -> None:
        """Stop every heartbeat loop."""
        self._closed.set()
        self._beats.iter_callback(lambda _key, info: setattr(info, "state", BeatState.SHUTDOWN))
        self._wakers.iter_callback(lambda _key, waker: waker.set())
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            if thread is not threading.current_thread():
                thread.join(timeout=1.0)

    def _period(self, info: BeatInfo) -> float:
        if info.period > 0:
            return info.period
        return self.client_beat_interval / 1000

    def _run(self, key: str, info: BeatInfo, waker: threading.Event) -> None:
        while True:
            with self._semaphore:
                if info.state is BeatState.SHUTDOWN or self._closed.is_set():
                    logger.info("instance[%s] stop heartBeating", key)
                    return
                try:
                    interval = self._proxy.send_beat(info)
                except Exception as exc:  # any failure is retried after a period
                    logger.error("beat to server return error:%s", exc)
                else:
                    if interval and interval > 0:
                        info.period = interval / 1000
                    self._records.set(key, int(time.time() * 1000))
            waker.wait(self._period(info))