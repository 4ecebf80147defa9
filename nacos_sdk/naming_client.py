"""Client of the naming service: register, discover and subscribe to instances."""

from __future__ import annotations

import bisect
import logging
import math
import os
import random

from .beat_reactor import BeatReactor
from .host_reactor import HostReactor
from .nacos_client import NacosClient
from .naming_proxy import NamingProxy
from .naming_types import (
    DEFAULT_GROUP,
    DEFAULT_NAMESPACE_ID,
    HEART_BEAT_INTERVAL,
    BeatInfo,
    BeatState,
    DeregisterInstanceParam,
    GetAllServiceInfoParam,
    GetServiceParam,
    Instance,
    RegisterInstanceParam,
    SelectAllInstancesParam,
    SelectInstancesParam,
    SelectOneHealthInstanceParam,
    Service,
    ServiceList,
    SubscribeParam,
    get_group_name,
)
from .subscribe_callback import SubscribeCallback

logger = logging.getLogger(__name__)

DEFAULT_BEAT_PERIOD = 5.0


class InstanceNotFoundError(LookupError):
    """No instance matches the selection."""


def _beat_period(metadata: dict[str, str]) -> float:
    """Return the heartbeat period in seconds, from metadata given in milliseconds."""
    value = metadata.get(HEART_BEAT_INTERVAL)
    if value is None:
        return DEFAULT_BEAT_PERIOD
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return DEFAULT_BEAT_PERIOD
    return millis / 1000 if millis > 0 else DEFAULT_BEAT_PERIOD


def select_instances_from(service: Service, healthy: bool) -> list[Instance]:
    """Return the enabled, positively weighted instances whose health matches."""
    if not service.hosts:
        raise InstanceNotFoundError("instance list is empty!")
    return [
        host for host in service.hosts
        if host.healthy == healthy and host.enable and host.weight > 0
    ]


def select_one_healthy_from(service: Service) -> Instance:
    """Pick one healthy, enabled instance at random, weighted by its weight."""
    if not service.hosts:
        raise InstanceNotFoundError("instance list is empty!")
    candidates = [h for h in service.hosts if h.healthy and h.enable and h.weight > 0]
    if not candidates:
        raise InstanceNotFoundError("healthy instance list is empty!")
    return Chooser(candidates).pick()


class Chooser:
    """Weighted random choice among instances, using their integer weights."""

    def __init__(self, instances: list[Instance]) -> None:
        self.data = sorted(instances, key=lambda instance: instance.weight)
        self.totals: list[int] = []
        running = 0
        for instance in self.data:
            running += int(instance.weight)
            self.totals.append(running)
        self.max = running

    def pick(self) -> Instance:
        if self.max <= 0:
            raise ValueError("total weight of instances must be at least 1")
        r = random.randint(1, self.max)
        return self.data[bisect.bisect_left(self.totals, r)]


class NamingClient:
    """Registers instances, looks services up and delivers change notifications."""

    def __init__(self, nacos_client: NacosClient) -> None:
        client_config = nacos_client.client_config
        server_configs = nacos_client.server_configs
        http_agent = nacos_client.http_agent
        self.namespace_id = client_config.namespace_id
        self._client_config = client_config
        self._subscribe_callback = SubscribeCallback()
        self._proxy = NamingProxy(client_config, server_configs, http_agent)
        self._host_reactor = HostReactor(
            self._proxy,
            client_config.cache_dir + os.sep + "naming",
            client_config.update_thread_num,
            client_config.not_load_cache_at_start,
            self._subscribe_callback,
            client_config.update_cache_when_empty,
        )
        self._beat_reactor = BeatReactor(self._proxy, client_config.beat_interval)

    def register_instance(self, param: RegisterInstanceParam) -> bool:
        """Register an instance; ephemeral ones also start sending heartbeats."""
        if not param.service_name:
            raise ValueError("serviceName cannot be empty!")
        group_name = param.group_name or DEFAULT_GROUP
        metadata = param.metadata if param.metadata is not None else {}
        grouped = get_group_name(param.service_name, group_name)
        instance = Instance(
            ip=param.ip,
            port=param.port,
            metadata=metadata,
            cluster_name=param.cluster_name,
            healthy=param.healthy,
            enable=param.enable,
            weight=param.weight,
            ephemeral=param.ephemeral,
        )
        beat_info = BeatInfo(
            ip=param.ip,
            port=param.port,
            metadata=metadata,
            service_name=grouped,
            cluster=param.cluster_name,
            weight=param.weight,
            period=_beat_period(metadata),
            state=BeatState.RUNNING,
        )
        self._proxy.register_instance(grouped, group_name, instance)
        if instance.ephemeral:
            self._beat_reactor.add_beat_info(grouped, beat_info)
        return True

    def deregister_instance(self, param: DeregisterInstanceParam) -> bool:
        group_name = param.group_name or DEFAULT_GROUP
        grouped = get_group_name(param.service_name, group_name)
        self._beat_reactor.remove_beat_info(grouped, param.ip, param.port)
        self._proxy.deregister_instance(grouped, param.ip, param.port, param.cluster, param.ephemeral)
        return True

    def _service(self, service_name: str, group_name: str, clusters: list[str]) -> Service:
        return self._host_reactor.get_service_info(
            get_group_name(service_name, group_name or DEFAULT_GROUP), ",".join(clusters)
        )

    def get_service(self, param: GetServiceParam) -> Service:
        return self._service(param.service_name, param.group_name, param.clusters)

    def get_all_services_info(self, param: GetAllServiceInfoParam) -> ServiceList:
        group_name = param.group_name or DEFAULT_GROUP
        namespace = param.namespace or self.namespace_id or DEFAULT_NAMESPACE_ID
        return self._host_reactor.get_all_service_info(
            namespace, group_name, param.page_no, param.page_size
        )

    def select_all_instances(self, param: SelectAllInstancesParam) -> list[Instance]:
        """Return every instance, whatever its health, state or weight."""
        service = self._service(param.service_name, param.group_name, param.clusters)
        return list(service.hosts)

    def select_instances(self, param: SelectInstancesParam) -> list[Instance]:
        service = self._service(param.service_name, param.group_name, param.clusters)
        return select_instances_from(service, param.healthy_only)

    def select_one_healthy_instance(self, param: SelectOneHealthInstanceParam) -> Instance:
        service = self._service(param.service_name, param.group_name, param.clusters)
        return select_one_healthy_from(service)

    def subscribe(self, param: SubscribeParam) -> None:
        """Register the callback of ``param`` for changes of its service."""
        if param.subscribe_callback is None:
            raise ValueError("subscribe callback can not be empty")
        group_name = param.group_name or DEFAULT_GROUP
        clusters = ",".join(param.clusters)
        self._subscribe_callback.add_callback(
            get_group_name(param.service_name, group_name), clusters, param.subscribe_callback
        )
        service = self._service(param.service_name, group_name, param.clusters)
        if not self._client_config.not_load_cache_at_start:
            self._subscribe_callback.service_changed(service)

    def unsubscribe(self, param: SubscribeParam) -> None:
        group_name = param.group_name or DEFAULT_GROUP
        self._subscribe_callback.remove_callback(
            get_group_name(param.service_name, group_name),
            ",".join(param.clusters),
            param.subscribe_callback,
        )

    def close(self) -> None:
        """Stop heartbeats, refreshing and the push listener."""
        self._beat_reactor.close()
        self._host_reactor.close()