"""Keeps the instance lists of services up to date from the naming server."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Protocol

from .concurrent_map import ConcurrentMap
from .disk_cache import read_services_from_file, write_services_to_file
from .naming_types import Service, ServiceList, get_service_cache_key, service_from_json
from .push_receiver import PushReceiver
from .subscribe_callback import SubscribeCallback

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_THREAD_NUM = 20
UPDATE_LOOP_INTERVAL = 1.0


class ServiceNotFoundError(LookupError):
    """No information about a service could be obtained."""


class ServiceQuerier(Protocol):
    def query_list(self, service_name: str, clusters: str, udp_port: int, healthy_only: bool) -> str: ...

    def get_all_service_info_list(
        self, namespace: str, group_name: str, page_no: int, page_size: int
    ) -> str: ...


def _now_millis() -> int:
    return int(time.time() * 1000)


class HostReactor:
    """Caches services, refreshes them when they expire and accepts server pushes."""

    def __init__(
        self,
        proxy: ServiceQuerier,
        cache_dir: str,
        update_thread_num: int = DEFAULT_UPDATE_THREAD_NUM,
        not_load_cache_at_start: bool = False,
        subscribe_callback: SubscribeCallback | None = None,
        update_cache_when_empty: bool = False,
    ) -> None:
        if update_thread_num <= 0:
            update_thread_num = DEFAULT_UPDATE_THREAD_NUM
        self._proxy = proxy
        self.cache_dir = cache_dir
        self.update_thread_num = update_thread_num
        self.update_cache_when_empty = update_cache_when_empty
        self._subscribe_callback = subscribe_callback or SubscribeCallback()
        self._services = ConcurrentMap()
        self._update_times = ConcurrentMap()
        self._semaphore = threading.BoundedSemaphore(update_thread_num)
        self._closed = threading.Event()
        self._push_receiver = PushReceiver(self)
        if not not_load_cache_at_start:
            self._load_cache_from_disk()
        self._updater = threading.Thread(
            target=self._update_loop, name="host-reactor-update", daemon=True
        )
        self._updater.start()

    def _load_cache_from_disk(self) -> None:
        for key, service in read_services_from_file(self.cache_dir).items():
            self._services.set(key, service)

    def process_service_json(self, result: str) -> None:
        """Take in a service document received from the server."""
        service = service_from_json(result)
        if service is None:
            return
        key = get_service_cache_key(service.name, service.clusters)
        old = self._services.get(key)
        if old is not None and not self.update_cache_when_empty and not service.hosts:
            logger.error("do not have useful host, ignore it, name:%s", service.name)
            return
        self._update_times.set(key, _now_millis())
        self._services.set(key, service)
        if old is None or service.hosts != old.hosts:
            if old is None:
                logger.info("service not found in cache %s", key)
            else:
                logger.info("service key:%s was updated to:%s", key, service.to_json())
            write_services_to_file(service, self.cache_dir)
            self._subscribe_callback.service_changed(service)

    def get_service_info(self, service_name: str, clusters: str) -> Service:
        """Return the cached service, querying the server first if it is unknown."""
        key = get_service_cache_key(service_name, clusters)
        service = self._services.get(key)
        if service is None:
            self._update_service_now(service_name, clusters)
            service = self._services.get(key)
            if service is None:
                raise ServiceNotFoundError("get service info failed")
        return service

    def get_all_service_info(
        self, namespace: str, group_name: str, page_no: int, page_size: int
    ) -> ServiceList:
        """Return one page of services; failures give an empty page."""
        try:
            result = self._proxy.get_all_service_info_list(namespace, group_name, page_no, page_size)
        except Exception as exc:
            logger.error(
                "GetAllServiceInfoList return error!nameSpace:%s groupName:%s pageNo:%d, pageSize:%d err:%s",
                namespace, group_name, page_no, page_size, exc,
            )
            return ServiceList()
        if not result:
            logger.error(
                "GetAllServiceInfoList result is empty!nameSpace:%s  groupName:%s pageNo:%d, pageSize:%d",
                namespace, group_name, page_no, page_size,
            )
            return ServiceList()
        try:
            data = json.loads(result)
            if not isinstance(data, dict):
                raise ValueError("service list must be a JSON object")
            return ServiceList.from_dict(data)
        except (ValueError, TypeError) as exc:
            logger.error(
                "GetAllServiceInfoList result json error!nameSpace:%s groupName:%s pageNo:%d, pageSize:%d err:%s",
                namespace, group_name, page_no, page_size, exc,
            )
            return ServiceList()

    def services(self) -> dict[str, Service]:
        """Return a snapshot of every cached service by cache key."""
        return self._services.items()

    def close(self) -> None:
        """Stop refreshing and stop listening for pushes."""
        self._closed.set()
        self._push_receiver.close()
        if self._updater is not threading.current_thread():
            self._updater.join(timeout=2.0)

    def _update_service_now(self, service_name: str, clusters: str) -> None:
        try:
            result = self._proxy.query_list(service_name, clusters, self._push_receiver.port, False)
        except Exception as exc:
            logger.error("QueryList return error!serviceName:%s cluster:%s err:%s",
                         service_name, clusters, exc)
            return
        if not result:
            logger.error("QueryList result is empty!serviceName:%s cluster:%s", service_name, clusters)
            return
        self.process_service_json(result)

    def _refresh(self, service_name: str, clusters: str) -> None:
        try:
            self._update_service_now(service_name, clusters)
        finally:
            self._semaphore.release()

    def _acquire_slot(self) -> bool:
        while not self._closed.is_set():
            if self._semaphore.acquire(timeout=0.5):
                return True
        return False

    def _update_loop(self) -> None:
        while not self._closed.is_set():
            now = _now_millis()
            for service in self._services.items().values():
                key = get_service_cache_key(service.name, service.clusters)
                last_ref = self._update_times.get(key, 0)
                if now - last_ref > service.cache_millis:
                    if not self._acquire_slot():
                        return
                    threading.Thread(
                        target=self._refresh,
                        args=(service.name, service.clusters),
                        name=f"host-reactor-refresh-{key}",
                        daemon=True,
                    ).start()
            if self._closed.wait(UPDATE_LOOP_INTERVAL):
                return