"""Shared client settings, the HTTP agent and the base client holding them."""

from __future__ import annotations

import dataclasses
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_PATH = "/nacos"
DEFAULT_SERVER_SCHEME = "http"

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class NacosError(Exception):
    """Error reported by a server, carrying its error code."""

    def __init__(self, error_code: str, message: str = "") -> None:
        super().__init__(message or error_code)
        self.error_code = str(error_code)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}" if self.message else self.error_code


@dataclass
class ClientConfig:
    """Settings of a client; zero values are replaced by defaults when applied."""

    timeout_ms: int = 0
    listen_interval: int = 0
    beat_interval: int = 0
    namespace_id: str = ""
    app_name: str = ""
    endpoint: str = ""
    region_id: str = ""
    access_key: str = ""
    secret_key: str = ""
    open_kms: bool = False
    cache_dir: str = ""
    update_thread_num: int = 0
    not_load_cache_at_start: bool = False
    update_cache_when_empty: bool = False
    log_dir: str = ""
    rotate_time: str = ""
    max_age: int = 0
    log_level: str = ""


@dataclass
class ServerConfig:
    """Address of one server."""

    ip_addr: str
    port: int
    context_path: str = ""
    scheme: str = ""


@dataclass
class HttpResponse:
    status_code: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)


class HttpAgent:
    """Sends form-style HTTP requests and returns the status and body."""

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        timeout_ms: int = 10000,
        params: dict[str, str] | None = None,
    ) -> HttpResponse:
        method = method.upper()
        query = urllib.parse.urlencode(params or {})
        request_headers = dict(headers or {})
        data = None
        if method in ("GET", "DELETE", "HEAD"):
            if query:
                url = f"{url}{'&' if '?' in url else '?'}{query}"
        else:
            data = query.encode("utf-8")
            if not any(name.lower() == "content-type" for name in request_headers):
                request_headers["Content-Type"] = _FORM_CONTENT_TYPE
        req = urllib.request.Request(url, data=data, method=method, headers=request_headers)
        try:
            with urllib.request.urlopen(req, timeout=timeout_ms / 1000) as resp:
                body = resp.read().decode("utf-8", errors="replace")
                return HttpResponse(resp.status, body, dict(resp.headers))
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            return HttpResponse(exc.code, body, dict(exc.headers or {}))


class NacosClient:
    """Holds the client config, server configs and HTTP agent of a client."""

    def __init__(self) -> None:
        self._client_config: ClientConfig | None = None
        self._server_configs: list[ServerConfig] | None = None
        self._http_agent: HttpAgent | None = None

    def set_client_config(self, config: ClientConfig) -> None:
        """Store a copy of ``config`` with defaults filled in."""
        cwd = os.getcwd()
        config = dataclasses.replace(
            config,
            timeout_ms=config.timeout_ms if config.timeout_ms > 0 else 10 * 1000,
            beat_interval=config.beat_interval if config.beat_interval > 0 else 5 * 1000,
            update_thread_num=config.update_thread_num if config.update_thread_num > 0 else 20,
            rotate_time=config.rotate_time or "24h",
            log_level=config.log_level or "info",
            max_age=config.max_age if config.max_age > 0 else 3,
            cache_dir=config.cache_dir or os.path.join(cwd, "cache"),
            log_dir=config.log_dir or os.path.join(cwd, "log"),
        )
        logger.info("logDir:<%s>   cacheDir:<%s>", config.log_dir, config.cache_dir)
        self._client_config = config

    def set_server_configs(self, configs: list[ServerConfig]) -> None:
        """Validate and store server addresses; an empty list means endpoint lookup."""
        checked = []
        for index, config in enumerate(configs):
            if not config.ip_addr or config.port <= 0 or config.port > 65535:
                raise ValueError(f"[client.SetServerConfig] configs[{index}] is invalid")
            checked.append(
                dataclasses.replace(
                    config,
                    context_path=config.context_path or DEFAULT_CONTEXT_PATH,
                    scheme=config.scheme or DEFAULT_SERVER_SCHEME,
                )
            )
        self._server_configs = checked

    @property
    def client_config(self) -> ClientConfig:
        if self._client_config is None:
            raise RuntimeError("[client.GetClientConfig] invalid client config")
        return self._client_config

    @property
    def server_configs(self) -> list[ServerConfig]:
        if self._server_configs is None:
            raise RuntimeError("[client.GetServerConfig] invalid server configs")
        return list(self._server_configs)

    @property
    def http_agent(self) -> HttpAgent:
        if self._http_agent is None:
            raise RuntimeError("[client.GetHttpAgent] invalid http agent")
        return self._http_agent

    @http_agent.setter
    def http_agent(self, agent: HttpAgent) -> None:
        if agent is None:
            raise ValueError("[client.SetHttpAgent] http agent can not be nil")
        self._http_agent = agent

    @property
    def has_http_agent(self) -> bool:
        return self._http_agent is not None