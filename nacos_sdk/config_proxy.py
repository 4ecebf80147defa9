"""HTTP calls to the configuration service."""

from __future__ import annotations

import logging
import random
from typing import Any, Mapping

from .config_types import ConfigPage, ConfigParam, SearchConfigParam, config_page_from_json
from .nacos_client import (
    DEFAULT_CONTEXT_PATH,
    DEFAULT_SERVER_SCHEME,
    ClientConfig,
    HttpAgent,
    NacosError,
    ServerConfig,
)

logger = logging.getLogger(__name__)

CONFIG_PATH = "/v1/cs/configs"
CONFIG_AGG_PATH = "/v1/cs/datum"
CONFIG_LISTEN_PATH = "/v1/cs/configs/listener"
CLIENT_VERSION = "nacos-sdk-python:v1.0.0"
REQUEST_ATTEMPTS = 3
LISTEN_INTERVAL_MS = 30000

_HEADERS = {
    "Client-Version": CLIENT_VERSION,
    "User-Agent": CLIENT_VERSION,
    "Content-Type": "application/x-www-form-urlencoded",
}


class ConfigOperationError(RuntimeError):
    """A publish or delete request was not accepted by the server."""


def _is_true(result: str) -> bool:
    return result.strip(" ").lower() == "true"


class ConfigProxy:
    """Builds configuration requests and sends them to one of the configured servers."""

    def __init__(
        self,
        server_configs: list[ServerConfig],
        client_config: ClientConfig,
        http_agent: HttpAgent,
    ) -> None:
        if not server_configs:
            raise ValueError("server configs not found")
        self.client_config = client_config
        self._servers = list(server_configs)
        self._agent = http_agent

    @property
    def server_list(self) -> list[ServerConfig]:
        return list(self._servers)

    def _base_url(self, server: Any) -> str:
        scheme = server.scheme or DEFAULT_SERVER_SCHEME
        context = server.context_path or DEFAULT_CONTEXT_PATH
        return f"{scheme}://{server.ip_addr}:{server.port}{context}"

    def _request(
        self,
        api: str,
        params: Mapping[str, str],
        headers: Mapping[str, str],
        method: str,
        timeout_ms: int,
    ) -> str:
        """Send a request, trying up to three times; raise the last failure."""
        merged = {**_HEADERS, **headers}
        start = random.randrange(len(self._servers))
        last_error: Exception | None = None
        for attempt in range(REQUEST_ATTEMPTS):
            server = self._servers[(start + attempt) % len(self._servers)]
            url = self._base_url(server) + api
            try:
                response = self._agent.request(method, url, dict(merged), timeout_ms, dict(params))
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

    @staticmethod
    def _auth_headers(access_key: str, secret_key: str) -> dict[str, str]:
        return {"accessKey": access_key, "secretKey": secret_key}

    @staticmethod
    def _with_tenant(params: dict[str, str], tenant: str) -> dict[str, str]:
        if tenant:
            params["tenant"] = tenant
        return params

    def get_config(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str) -> str:
        """Return the content of a configuration; raise NacosError on a failed request."""
        params = self._with_tenant(param.to_params(), tenant)
        return self._request(CONFIG_PATH, params, self._auth_headers(access_key, secret_key),
                             "GET", self.client_config.timeout_ms)

    def search_config(
        self, param: SearchConfigParam, tenant: str, access_key: str, secret_key: str
    ) -> ConfigPage:
        """Return one page of configurations matching ``param``."""
        params = self._with_tenant(param.to_params(), tenant)
        params.setdefault("group", "")
        params.setdefault("dataId", "")
        result = self._request(CONFIG_PATH, params, self._auth_headers(access_key, secret_key),
                               "GET", self.client_config.timeout_ms)
        return config_page_from_json(result)

    def publish_config(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str) -> bool:
        params = self._with_tenant(param.to_params(), tenant)
        try:
            result = self._request(CONFIG_PATH, params, self._auth_headers(access_key, secret_key),
                                   "POST", self.client_config.timeout_ms)
        except Exception as exc:
            raise ConfigOperationError(
                f"[client.PublishConfig] publish config failed:{exc}") from exc
        if _is_true(result):
            return True
        raise ConfigOperationError(f"[client.PublishConfig] publish config failed:{result}")

    def _aggr(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str,
              method: str, failure: str) -> bool:
        params = self._with_tenant(param.to_params(), tenant)
        params["method"] = method
        try:
            self._request(CONFIG_AGG_PATH, params, self._auth_headers(access_key, secret_key),
                          "POST", self.client_config.timeout_ms)
        except Exception as exc:
            raise ConfigOperationError(f"{failure}{exc}") from exc
        return True

    def publish_aggr(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str) -> bool:
        return self._aggr(param, tenant, access_key, secret_key, "addDatum",
                          "[client.PublishAggProxy] publish agg failed:")

    def delete_aggr(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str) -> bool:
        return self._aggr(param, tenant, access_key, secret_key, "deleteDatum",
                          "[client.DeleteAggProxy] delete agg failed:")

    def delete_config(self, param: ConfigParam, tenant: str, access_key: str, secret_key: str) -> bool:
        params = self._with_tenant(param.to_params(), tenant)
        try:
            result = self._request(CONFIG_PATH, params, self._auth_headers(access_key, secret_key),
                                   "DELETE", self.client_config.timeout_ms)
        except Exception as exc:
            raise ConfigOperationError(
                f"[client.DeleteConfig] deleted config failed:{exc}") from exc
        if _is_true(result):
            return True
        raise ConfigOperationError(f"[client.DeleteConfig] deleted config failed: {result}")

    def listen_config(
        self,
        params: Mapping[str, str],
        is_initializing: bool,
        tenant: str,
        access_key: str,
        secret_key: str,
    ) -> str:
        """Long-poll for changes of the listed configurations; return the changed keys."""
        headers = {
            "Content-Type": "application/x-www-form-urlencoded;charset=utf-8",
            "Long-Pulling-Timeout": str(LISTEN_INTERVAL_MS),
        }
        if is_initializing:
            headers["Long-Pulling-Timeout-No-Hangup"] = "true"
        headers.update(self._auth_headers(access_key, secret_key))
        request_params = self._with_tenant(dict(params), tenant)
        logger.info("[client.ListenConfig] request params:%s", request_params)
        # A little longer than the server hold time so its answer is not cut off.
        timeout = LISTEN_INTERVAL_MS + LISTEN_INTERVAL_MS // 10
        return self._request(CONFIG_LISTEN_PATH, request_params, headers, "POST", timeout)