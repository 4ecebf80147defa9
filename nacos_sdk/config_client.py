"""Client of the configuration service: read, publish, search and listen."""

from __future__ import annotations

import dataclasses
import logging
import os
import threading
from typing import Any, Callable

from .concurrent_map import ConcurrentMap
from .config_listening import (
    KEY_LISTEN_CONFIGS,
    PER_TASK_CONFIG_SIZE,
    CacheData,
    DelayScheduler,
    build_listening_configs,
    parse_changed_configs,
    task_count_for,
)
from .config_proxy import ConfigProxy
from .config_types import (
    ConfigPage,
    ConfigParam,
    SearchConfigParam,
    get_config_cache_key,
    md5_hex,
)
from .disk_cache import ConfigCacheError, read_config_from_file, write_config_to_file
from .nacos_client import NacosError

logger = logging.getLogger(__name__)

SCHEDULER_DELAY = 0.01
SEARCH_MODES = ("accurate", "blur")
DEFAULT_PAGE_NO = 1
DEFAULT_PAGE_SIZE = 10


class ConfigFetchError(RuntimeError):
    """A configuration could be read neither from the server nor from the cache."""


def _require(operation: str, **values: str) -> None:
    for name, value in values.items():
        if not value:
            raise ValueError(f"[client.{operation}] param.{name} can not be empty")


def _error_code(exc: BaseException) -> str:
    return str(getattr(exc, "error_code", ""))


class ConfigClient:
    """Reads and writes configurations and notifies listeners of changes."""

    def __init__(self, nacos_client: Any) -> None:
        client_config = nacos_client.client_config
        self._client_config = client_config
        self._proxy = ConfigProxy(
            nacos_client.server_configs, client_config, nacos_client.http_agent
        )
        self.config_cache_dir = client_config.cache_dir + os.sep + "config"
        self._cache_map = ConcurrentMap()
        self._lock = threading.Lock()
        self._tasks: dict[int, DelayScheduler] = {}
        self._closed = threading.Event()
        self._root = DelayScheduler(SCHEDULER_DELAY, self._listen_executor)
        self._root.start()

    @property
    def _namespace(self) -> str:
        return self._client_config.namespace_id

    def _keys(self) -> tuple[str, str]:
        return (
            getattr(self._client_config, "access_key", "") or "",
            getattr(self._client_config, "secret_key", "") or "",
        )

    def get_config(self, param: ConfigParam) -> str:
        """Return the content of a configuration, falling back to the local cache."""
        return self._get_config_inner(param)

    def _get_config_inner(self, param: ConfigParam) -> str:
        _require("GetConfig", dataId=param.data_id, group=param.group)
        namespace = self._namespace
        cache_key = get_config_cache_key(param.data_id, param.group, namespace)
        try:
            content = self._proxy.get_config(param, namespace, *self._keys())
        except Exception as exc:
            logger.info("get config from server error:%s", exc)
            if isinstance(exc, NacosError):
                code = _error_code(exc)
                if code == "404":
                    write_config_to_file(cache_key, self.config_cache_dir, "")
                    logger.warning(
                        "[client.GetConfig] config not found, dataId: %s, group: %s, namespaceId: %s.",
                        param.data_id, param.group, namespace,
                    )
                    return ""
                if code == "403":
                    raise PermissionError("get config forbidden") from exc
            try:
                return read_config_from_file(cache_key, self.config_cache_dir)
            except ConfigCacheError as cache_exc:
                logger.error("get config from cache error:%s", cache_exc)
                raise ConfigFetchError("read config from both server and cache fail") from exc
        write_config_to_file(cache_key, self.config_cache_dir, content)
        return content

    def publish_config(self, param: ConfigParam) -> bool:
        _require("PublishConfig", dataId=param.data_id, group=param.group, content=param.content)
        return self._proxy.publish_config(param, self._namespace, *self._keys())

    def delete_config(self, param: ConfigParam) -> bool:
        _require("DeleteConfig", dataId=param.data_id, group=param.group)
        return self._proxy.delete_config(param, self._namespace, *self._keys())

    def publish_aggr(self, param: ConfigParam) -> bool:
        _require("PublishAggr", dataId=param.data_id, group=param.group,
                 content=param.content, DatumId=param.datum_id)
        return self._proxy.publish_aggr(param, self._namespace, *self._keys())

    def remove_aggr(self, param: ConfigParam) -> bool:
        _require("DeleteAggr", dataId=param.data_id, group=param.group,
                 content=param.content, DatumId=param.datum_id)
        return self._proxy.delete_aggr(param, self._namespace, *self._keys())

    def search_config(self, param: SearchConfigParam) -> ConfigPage | None:
        """Return one page of matching configurations, or None if nothing exists."""
        if param.search not in SEARCH_MODES:
            raise ValueError("[client.searchConfigInner] param.search must be accurate or blur")
        param = dataclasses.replace(
            param,
            page_no=param.page_no if param.page_no > 0 else DEFAULT_PAGE_NO,
            page_size=param.page_size if param.page_size > 0 else DEFAULT_PAGE_SIZE,
        )
        try:
            return self._proxy.search_config(param, self._namespace, *self._keys())
        except NacosError as exc:
            logger.error("search config from server error:%s", exc)
            code = _error_code(exc)
            if code == "404":
                return None
            if code == "403":
                raise PermissionError("get config forbidden") from exc
            raise

    def listen_config(self, param: ConfigParam) -> None:
        """Start watching a configuration; ``param.on_change`` is called on changes."""
        if not param.data_id:
            raise ValueError("[client.ListenConfig] DataId can not be empty")
        if not param.group:
            raise ValueError("[client.ListenConfig] Group can not be empty")
        namespace = self._namespace
        key = get_config_cache_key(param.data_id, param.group, namespace)
        with self._lock:
            existing = self._cache_map.get(key)
            if existing is not None:
                existing.is_initializing = True
                return
            try:
                content = read_config_from_file(key, self.config_cache_dir)
            except ConfigCacheError as exc:
                logger.error("[cache.ReadConfigFromFile] error: %s", exc)
                content = ""
            md5 = md5_hex(content) if content else ""
            self._cache_map.set(
                key,
                CacheData(
                    data_id=param.data_id,
                    group=param.group,
                    tenant=namespace,
                    content=content,
                    md5=md5,
                    task_id=self._cache_map.count() // PER_TASK_CONFIG_SIZE,
                    is_initializing=True,
                    listener=param.on_change,
                    last_md5=md5,
                ),
            )

    def cancel_listen_config(self, param: ConfigParam) -> None:
        """Stop watching a configuration."""
        key = get_config_cache_key(param.data_id, param.group, self._namespace)
        with self._lock:
            self._cache_map.remove(key)
            logger.info("Cancel listen config DataId:%s Group:%s", param.data_id, param.group)
            if task_count_for(self._cache_map.count()) < len(self._tasks):
                for index, entry_key in enumerate(sorted(self._cache_map.keys())):
                    entry = self._cache_map.get(entry_key)
                    if entry is not None:
                        entry.task_id = index // PER_TASK_CONFIG_SIZE

    def close(self) -> None:
        """Stop all listening."""
        self._closed.set()
        self._root.stop()
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.stop()

    def _listen_executor(self) -> None:
        if self._closed.is_set():
            return
        wanted = task_count_for(self._cache_map.count())
        stopped: list[DelayScheduler] = []
        with self._lock:
            current = len(self._tasks)
            for task_id in range(current, wanted):
                scheduler = DelayScheduler(SCHEDULER_DELAY, self._long_polling(task_id))
                self._tasks[task_id] = scheduler
                scheduler.start()
            for task_id in range(wanted, current):
                stopped.append(self._tasks.pop(task_id))
        for scheduler in stopped:
            scheduler.stop()

    def _long_polling(self, task_id: int) -> Callable[[], None]:
        def poll() -> None:
            entries = [
                entry for entry in self._cache_map.items().values() if entry.task_id == task_id
            ]
            if not entries:
                return
            initializing = [entry for entry in entries if entry.is_initializing]
            namespace = self._namespace
            params = {KEY_LISTEN_CONFIGS: build_listening_configs(entries)}
            changed = self._proxy.listen_config(
                params, bool(initializing), namespace, *self._keys()
            )
            with self._lock:
                for entry in initializing:
                    entry.is_initializing = False
            if not changed.strip(" "):
                logger.info("[client.ListenConfig] no change")
                return
            logger.info("[client.ListenConfig] config changed:%s", changed)
            self._call_listeners(changed, namespace)

        return poll

    def _call_listeners(self, changed: str, tenant: str) -> None:
        for data_id, group in parse_changed_configs(changed):
            key = get_config_cache_key(data_id, group, tenant)
            entry = self._cache_map.get(key)
            if entry is None:
                continue
            try:
                content = self._get_config_inner(ConfigParam(data_id=entry.data_id, group=entry.group))
            except Exception as exc:
                logger.error("[client.getConfigInner] DataId:[%s] Group:[%s] Error:[%s]",
                             entry.data_id, entry.group, exc)
                continue
            with self._lock:
                entry.content = content
                entry.md5 = md5_hex(content)
                if entry.md5 == entry.last_md5:
                    continue
                entry.last_md5 = entry.md5
                listener = entry.listener
            if listener is not None:
                threading.Thread(
                    target=listener,
                    args=(tenant, group, data_id, content),
                    name="config-listener",
                    daemon=True,
                ).start()