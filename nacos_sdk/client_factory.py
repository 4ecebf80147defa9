"""Builds configuration and naming clients from settings."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .config_client import ConfigClient
from .nacos_client import ClientConfig, HttpAgent, NacosClient, ServerConfig
from .naming_client import NamingClient

logger = logging.getLogger(__name__)

KEY_CLIENT_CONFIG = "clientConfig"
KEY_SERVER_CONFIGS = "serverConfigs"


@dataclass
class NacosClientParam:
    """Client settings and the servers to talk to."""

    client_config: ClientConfig | None = None
    server_configs: list[ServerConfig] = field(default_factory=list)


def get_config_param(properties: Mapping[str, Any]) -> NacosClientParam:
    """Read client and server settings from a property mapping; wrong types are ignored."""
    param = NacosClientParam()
    client_config = properties.get(KEY_CLIENT_CONFIG)
    if isinstance(client_config, ClientConfig):
        param.client_config = copy.copy(client_config)
    server_configs = properties.get(KEY_SERVER_CONFIGS)
    if isinstance(server_configs, (list, tuple)) and all(
        isinstance(server, ServerConfig) for server in server_configs
    ):
        param.server_configs = [copy.copy(server) for server in server_configs]
    return param


def build_nacos_client(param: NacosClientParam) -> NacosClient:
    """Return a client holding validated settings; raise ValueError if no server is known."""
    client = NacosClient()
    client_config = copy.copy(param.client_config) if param.client_config else ClientConfig()
    client.set_client_config(client_config)
    if not param.server_configs:
        if not getattr(client.client_config, "endpoint", ""):
            raise ValueError("server configs not found in properties")
        client.set_server_configs([])
    else:
        client.set_server_configs([copy.copy(server) for server in param.server_configs])
    try:
        client.http_agent
    except (ValueError, RuntimeError, AttributeError):
        client.http_agent = HttpAgent()
    return client


def new_config_client(param: NacosClientParam) -> ConfigClient:
    return ConfigClient(build_nacos_client(param))


def new_naming_client(param: NacosClientParam) -> NamingClient:
    return NamingClient(build_nacos_client(param))


def create_config_client(properties: Mapping[str, Any]) -> ConfigClient:
    """Create a configuration client from a property mapping."""
    return new_config_client(get_config_param(properties))


def create_naming_client(properties: Mapping[str, Any]) -> NamingClient:
    """Create a naming client from a property mapping."""
    return new_naming_client(get_config_param(properties))