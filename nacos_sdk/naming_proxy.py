"""HTTP calls to the naming service: registration, heartbeats and queries."""

from __future__ import annotations

import json
import logging
import random
import socket
from decimal import Decimal
from typing import Any, Mapping

from .nacos_client import (
    DEFAULT_CONTEXT_PATH,
    DEFAULT_SERVER_SCHEME,
    ClientConfig,
    HttpAgent,
    NacosError,
    ServerConfig,
)
from .naming_types import BeatInfo, Instance, ServiceList

logger = logging.getLogger(__name__)

SERVICE_BASE_PATH = "/v1/ns"
SERVICE_PATH = SERVICE_BASE_PATH + "/instance"
SERVICE_INFO_PATH = SERVICE_BASE_PATH + "/service"
CLIENT_VERSION = "nacos-sdk-python:v1.0.0"
REQUEST_ATTEMPTS = 3

_HEADERS = {
    "Client-Version": CLIENT_VERSION,
    "User-Agent": CLIENT_VERSION,
    "Connection": "Keep-Alive",
    "Request-Module": "Naming",
    "Content-Type": "application/x-www-form-urlencoded",
}


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _format_float(value: float) -> str:
    """Format a float in the shortest plain decimal form, without exponent."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _local_ip() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


class NamingProxy:
    """Builds naming requests and sends them to one of the configured servers."""

    def __init__(
        self,
        client_config: ClientConfig,
        server_configs: list[ServerConfig],
        http_agent: HttpAgent,
    ) -> None:
        if not server_configs:
            raise ValueError("server configs not found")
        self.client_config = client_config
        self._servers = list(server_configs)
        self._agent = http_agent

    def _base_url(self, server: ServerConfig) -> str:
        scheme = server.scheme or DEFAULT_SERVER_SCHEME
        context = server.context_path or DEFAULT_CONTEXT_PATH
        return f"{scheme}://{server.ip_addr}:{server.port}{context}"

    def _request(self, api: str, params: Mapping[str, str], method: str) -> str:
        """Send a request, trying up to three times; raise the last failure."""
        start = random.randrange(len(self._servers))
        last_error: Exception | None = None
        for attempt in range(REQUEST_ATTEMPTS):
            server = self._servers[(start + attempt) % len(self._servers)]
            url = self._base_url(server) + api
            try:
                response = self._agent.request(
                    method, url, dict(_HEADERS), self.client_config.timeout_ms, dict(params)
                )
            except Exception as exc:  # network failures are retried
                logger.error("api<%s>,method:<%s>, params:<%s>, call domain error:<%s>",
                             api, method, params, exc)
                last_error = exc
                continue
            if response.status_code == 200:
                return response.body
            last_error = NacosError(str(response.status_code), response.body)
            logger.error("api<%s>,method:<%s>, params:<%s>, status:<%d>, result:<%s>",
                         api, method, params, response.status_code, response.body)
        assert last_error is not None
        raise last_error

    def register_instance(self, service_name: str, group_name: str, instance: Instance) -> str:
        logger.info("register instance namespaceId:<%s>,serviceName:<%s> with instance:<%s>",
                    self.client_config.namespace_id, service_name, instance.to_dict())
        params = {
            "namespaceId": self.client_config.namespace_id,
            "serviceName": service_name,
            "groupName": group_name,
            "app": self.client_config.app_name,
            "clusterName": instance.cluster_name,
            "ip": instance.ip,
            "port": str(int(instance.port)),
            "weight": _format_float(instance.weight),
            "enable": _format_bool(instance.enable),
            "healthy": _format_bool(instance.healthy),
            "metadata": _compact_json(instance.metadata or {}),
            "ephemeral": _format_bool(instance.ephemeral),
        }
        return self._request(SERVICE_PATH, params, "POST")

    def deregister_instance(
        self, service_name: str, ip: str, port: int, cluster_name: str, ephemeral: bool
    ) -> str:
        logger.info("deregister instance namespaceId:<%s>,serviceName:<%s> with instance:<%s:%d@%s>",
                    self.client_config.namespace_id, service_name, ip, port, cluster_name)
        params = {
            "namespaceId": self.client_config.namespace_id,
            "serviceName": service_name,
            "clusterName": cluster_name,
            "ip": ip,
            "port": str(int(port)),
            "ephemeral": _format_bool(ephemeral),
        }
        return self._request(SERVICE_PATH, params, "DELETE")

    def send_beat(self, info: BeatInfo) -> int:
        """Send one heartbeat; return the interval in ms the server asks for, or 0."""
        beat = info.to_json()
        logger.info("namespaceId:<%s> sending beat to server:<%s>",
                    self.client_config.namespace_id, beat)
        params = {
            "namespaceId": self.client_config.namespace_id,
            "serviceName": info.service_name,
            "beat": beat,
        }
        result = self._request(SERVICE_BASE_PATH + "/instance/beat", params, "PUT")
        if not result:
            return 0
        try:
            data = json.loads(result)
            interval = data["clientBeatInterval"]
            if isinstance(interval, bool) or not isinstance(interval, int):
                raise TypeError("clientBeatInterval is not an integer")
        except (ValueError, TypeError, KeyError) as exc:
            raise ValueError(
                f"namespaceId:<{self.client_config.namespace_id}> sending beat to server:<{beat}> "
                f"get 'clientBeatInterval' from <{result}> error:<{exc}>"
            ) from exc
        return interval

    def get_service_list(
        self,
        page_no: int,
        page_size: int,
        group_name: str,
        selector: Mapping[str, Any] | None = None,
    ) -> ServiceList:
        """Return one page of service names; ``selector`` has keys type and expression."""
        params = {
            "namespaceId": self.client_config.namespace_id,
            "groupName": group_name,
            "pageNo": str(page_no),
            "pageSize": str(page_size),
        }
        if selector is not None and selector.get("type") == "label":
            params["selector"] = _compact_json(dict(selector))
        result = self._request(SERVICE_BASE_PATH + "/service/list", params, "GET")
        if not result:
            raise ValueError("request server return empty")
        context = (
            f"namespaceId:<{self.client_config.namespace_id}> get service list pageNo:<{page_no}> "
            f"pageSize:<{page_size}> selector:<{_compact_json(dict(selector) if selector else None)}> "
            f"from <{group_name}>"
        )
        try:
            data = json.loads(result)
            count = data["count"]
            if isinstance(count, bool) or not isinstance(count, int):
                raise TypeError("count is not an integer")
        except (ValueError, TypeError, KeyError) as exc:
            raise ValueError(f"{context} get 'count' from <{result}> error:<{exc}>") from exc
        doms = data.get("doms")
        if not isinstance(doms, list):
            raise ValueError(f"{context} get 'doms' from <{result}> error:<doms is not a list>")
        names = [d if isinstance(d, str) else _compact_json(d) for d in doms]
        return ServiceList(count=count, doms=names)

    def server_healthy(self) -> bool:
        try:
            result = self._request(SERVICE_BASE_PATH + "/operator/metrics", {}, "GET")
        except Exception as exc:
            logger.error("namespaceId:[%s] sending server healthy failed!,error:%s",
                         self.client_config.namespace_id, exc)
            return False
        if not result:
            return False
        try:
            status = json.loads(result)["status"]
        except (ValueError, TypeError, KeyError) as exc:
            logger.error("namespaceId:[%s] sending server healthy failed!,result:%s error:%s",
                         self.client_config.namespace_id, result, exc)
            return False
        return status == "UP"

    def query_list(self, service_name: str, clusters: str, udp_port: int, healthy_only: bool) -> str:
        params = {
            "namespaceId": self.client_config.namespace_id,
            "serviceName": service_name,
            "app": self.client_config.app_name,
            "clusters": clusters,
            "udpPort": str(udp_port),
            "healthyOnly": _format_bool(healthy_only),
            "clientIP": _local_ip(),
        }
        return self._request(SERVICE_PATH + "/list", params, "GET")

    def get_all_service_info_list(
        self, namespace: str, group_name: str, page_no: int, page_size: int
    ) -> str:
        params = {
            "namespaceId": namespace,
            "groupName": group_name,
            "pageNo": str(int(page_no)),
            "pageSize": str(int(page_size)),
        }
        return self._request(SERVICE_INFO_PATH + "/list", params, "GET")