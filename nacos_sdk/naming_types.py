"""Data types exchanged with the naming service, and the key helpers they use."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "DEFAULT_GROUP"
DEFAULT_NAMESPACE_ID = "public"
SERVICE_INFO_SPLITER = "@@"
NAMING_INSTANCE_ID_SPLITTER = "#"
HEART_BEAT_INTERVAL = "preserved.heart.beat.interval"


def _lookup(data: dict[str, Any], name: str, default: Any = None) -> Any:
    """Fetch ``name`` from ``data``, falling back to a case-insensitive match."""
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


def get_group_name(service_name: str, group_name: str) -> str:
    """Return the grouped service name ``group@@service``."""
    return group_name + SERVICE_INFO_SPLITER + service_name


def get_service_cache_key(service_name: str, clusters: str) -> str:
    """Return the cache key of a service restricted to ``clusters``."""
    if not clusters:
        return service_name
    return service_name + SERVICE_INFO_SPLITER + clusters


@dataclass
class Instance:
    """One registered instance of a service."""

    ip: str = ""
    port: int = 0
    weight: float = 0.0
    valid: bool = False
    marked: bool = False
    instance_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    cluster_name: str = ""
    service_name: str = ""
    enable: bool = False
    healthy: bool = False
    ephemeral: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "marked": self.marked,
            "instanceId": self.instance_id,
            "port": self.port,
            "ip": self.ip,
            "weight": self.weight,
            "metadata": self.metadata,
            "clusterName": self.cluster_name,
            "serviceName": self.service_name,
            "enabled": self.enable,
            "healthy": self.healthy,
            "ephemeral": self.ephemeral,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instance:
        metadata = _lookup(data, "metadata")
        return cls(
            ip=str(_lookup(data, "ip", "")),
            port=int(_lookup(data, "port", 0)),
            weight=float(_lookup(data, "weight", 0.0)),
            valid=bool(_lookup(data, "valid", False)),
            marked=bool(_lookup(data, "marked", False)),
            instance_id=str(_lookup(data, "instanceId", "")),
            metadata=dict(metadata) if metadata else {},
            cluster_name=str(_lookup(data, "clusterName", "")),
            service_name=str(_lookup(data, "serviceName", "")),
            enable=bool(_lookup(data, "enabled", False)),
            healthy=bool(_lookup(data, "healthy", False)),
            ephemeral=bool(_lookup(data, "ephemeral", False)),
        )


@dataclass
class Service:
    """A service with the instances currently known for it."""

    name: str = ""
    dom: str = ""
    cache_millis: int = 0
    use_specified_url: bool = False
    hosts: list[Instance] = field(default_factory=list)
    checksum: str = ""
    last_ref_time: int = 0
    env: str = ""
    clusters: str = ""
    metadata: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dom": self.dom,
            "cacheMillis": self.cache_millis,
            "useSpecifiedUrl": self.use_specified_url,
            "hosts": [host.to_dict() for host in self.hosts],
            "checksum": self.checksum,
            "lastRefTime": self.last_ref_time,
            "env": self.env,
            "clusters": self.clusters,
            "metadata": self.metadata,
            "name": self.name,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Service:
        hosts = _lookup(data, "hosts") or []
        if not isinstance(hosts, list):
            raise TypeError("hosts must be a list")
        metadata = _lookup(data, "metadata")
        return cls(
            name=str(_lookup(data, "name", "")),
            dom=str(_lookup(data, "dom", "")),
            cache_millis=int(_lookup(data, "cacheMillis", 0)),
            use_specified_url=bool(_lookup(data, "useSpecifiedUrl", False)),
            hosts=[Instance.from_dict(host) for host in hosts],
            checksum=str(_lookup(data, "checksum", "")),
            last_ref_time=int(_lookup(data, "lastRefTime", 0)),
            env=str(_lookup(data, "env", "")),
            clusters=str(_lookup(data, "clusters", "")),
            metadata=dict(metadata) if metadata is not None else None,
        )


def service_from_json(text: str) -> Service | None:
    """Parse a service document; return None if it is not a valid one."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        logger.error("failed to parse service json:%s, err:%s", text, exc)
        return None
    if not isinstance(data, dict):
        logger.error("service json is not an object:%s", text)
        return None
    try:
        return Service.from_dict(data)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.error("failed to read service json:%s, err:%s", text, exc)
        return None


@dataclass
class ServiceList:
    """One page of service names."""

    count: int = 0
    doms: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceList:
        doms = _lookup(data, "doms") or []
        return cls(count=int(_lookup(data, "count", 0)), doms=[str(d) for d in doms])


@dataclass
class SubscribeService:
    """An instance as handed to subscription callbacks."""

    ip: str = ""
    port: int = 0
    weight: float = 0.0
    valid: bool = False
    instance_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    cluster_name: str = ""
    service_name: str = ""
    enable: bool = False


class BeatState(enum.IntEnum):
    RUNNING = 0
    SHUTDOWN = 1


@dataclass
class BeatInfo:
    """Heartbeat of one ephemeral instance; ``period`` is in seconds."""

    ip: str = ""
    port: int = 0
    weight: float = 0.0
    service_name: str = ""
    cluster: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    scheduled: bool = False
    period: float = 0.0
    state: BeatState = BeatState.RUNNING

    def to_json(self) -> str:
        return json.dumps(
            {
                "ip": self.ip,
                "port": self.port,
                "weight": self.weight,
                "serviceName": self.service_name,
                "cluster": self.cluster,
                "metadata": self.metadata,
                "scheduled": self.scheduled,
            }
        )


SubscribeCallbackFunc = Callable[[list[SubscribeService], "Exception | None"], None]


@dataclass
class RegisterInstanceParam:
    ip: str = ""
    port: int = 0
    weight: float = 0.0
    enable: bool = False
    healthy: bool = False
    metadata: dict[str, str] | None = None
    cluster_name: str = ""
    service_name: str = ""
    group_name: str = ""
    ephemeral: bool = False


@dataclass
class DeregisterInstanceParam:
    ip: str = ""
    port: int = 0
    cluster: str = ""
    service_name: str = ""
    group_name: str = ""
    ephemeral: bool = False


@dataclass
class GetServiceParam:
    service_name: str = ""
    clusters: list[str] = field(default_factory=list)
    group_name: str = ""


@dataclass
class GetAllServiceInfoParam:
    namespace: str = ""
    group_name: str = ""
    page_no: int = 0
    page_size: int = 0


@dataclass
class SelectAllInstancesParam:
    service_name: str = ""
    clusters: list[str] = field(default_factory=list)
    group_name: str = ""


@dataclass
class SelectInstancesParam:
    service_name: str = ""
    clusters: list[str] = field(default_factory=list)
    group_name: str = ""
    healthy_only: bool = False


@dataclass
class SelectOneHealthInstanceParam:
    service_name: str = ""
    clusters: list[str] = field(default_factory=list)
    group_name: str = ""


@dataclass
class SubscribeParam:
    service_name: str = ""
    clusters: list[str] = field(default_factory=list)
    group_name: str = ""
    subscribe_callback: SubscribeCallbackFunc | None = field(default=None, compare=False)