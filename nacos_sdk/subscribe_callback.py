"""Registry of callbacks notified when a subscribed service changes."""

from __future__ import annotations

import logging

from .concurrent_map import ConcurrentMap
from .naming_types import (
    Instance,
    Service,
    SubscribeCallbackFunc,
    SubscribeService,
    get_service_cache_key,
)

logger = logging.getLogger(__name__)


class SubscribeError(Exception):
    """Passed to callbacks when a subscription cannot be served."""


def _to_subscribe_service(host: Instance) -> SubscribeService:
    return SubscribeService(
        ip=host.ip,
        port=host.port,
        weight=host.weight,
        valid=host.valid,
        instance_id=host.instance_id,
        metadata=host.metadata,
        cluster_name=host.cluster_name,
        service_name=host.service_name,
        enable=host.enable,
    )


class SubscribeCallback:
    """Keeps callbacks per service and clusters and calls them on changes."""

    def __init__(self) -> None:
        self._callbacks = ConcurrentMap()

    def add_callback(self, service_name: str, clusters: str, callback: SubscribeCallbackFunc) -> None:
        logger.info("adding %s with %s to listener map", service_name, clusters)
        key = get_service_cache_key(service_name, clusters)
        self._callbacks.upsert(
            key, callback, lambda exists, old, new: list(old or []) + [new]
        )

    def remove_callback(self, service_name: str, clusters: str, callback: SubscribeCallbackFunc) -> None:
        logger.info("removing %s with %s to listener map", service_name, clusters)
        key = get_service_cache_key(service_name, clusters)
        current = self._callbacks.get(key)
        if current is not None:
            self._callbacks.set(key, [item for item in current if item is not callback])

    def callbacks(self, service_name: str, clusters: str) -> list[SubscribeCallbackFunc]:
        """Return the callbacks registered for a service and clusters."""
        return list(self._callbacks.get(get_service_cache_key(service_name, clusters)) or [])

    def service_changed(self, service: Service | None) -> None:
        """Notify the callbacks of ``service`` with its current instances."""
        if service is None or not service.name:
            return
        registered = self._callbacks.get(get_service_cache_key(service.name, service.clusters))
        if not registered:
            return
        for callback in registered:
            if not service.hosts:
                callback([], SubscribeError("[client.Subscribe] subscribe failed,hosts is empty"))
                return
            callback([_to_subscribe_service(host) for host in service.hosts], None)