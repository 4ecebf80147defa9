import json
import os
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from nacos_sdk.nacos_client import (
    ClientConfig,
    HttpAgent,
    NacosClient,
    NacosError,
    ServerConfig,
)


class _Handler(BaseHTTPRequestHandler):
    def _reply(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode() if length else ""
        parsed = urllib.parse.urlparse(self.path)
        if parsed.path == "/missing":
            payload = b"nope"
            self.send_response(404)
        else:
            payload = json.dumps(
                {
                    "method": self.command,
                    "path": parsed.path,
                    "query": dict(urllib.parse.parse_qsl(parsed.query)),
                    "form": dict(urllib.parse.parse_qsl(body)),
                    "content_type": self.headers.get("Content-Type"),
                    "custom": self.headers.get("Request-Module"),
                }
            ).encode()
            self.send_response(200)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = do_POST = do_PUT = do_DELETE = _reply

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_client_config_defaults():
    client = NacosClient()
    client.set_client_config(ClientConfig())
    config = client.client_config
    assert config.timeout_ms == 10 * 1000
    assert config.beat_interval == 5 * 1000
    assert config.update_thread_num == 20
    assert config.rotate_time == "24h"
    assert config.log_level == "info"
    assert config.max_age == 3
    assert config.cache_dir == os.path.join(os.getcwd(), "cache")
    assert config.log_dir == os.path.join(os.getcwd(), "log")


def test_client_config_keeps_given_values():
    given = ClientConfig(
        timeout_ms=5000,
        namespace_id="ns",
        log_dir="/tmp/nacos/log",
        cache_dir="/tmp/nacos/cache",
        rotate_time="1h",
        log_level="debug",
    )
    client = NacosClient()
    client.set_client_config(given)
    config = client.client_config
    assert config.timeout_ms == 5000
    assert config.namespace_id == "ns"
    assert config.cache_dir == "/tmp/nacos/cache"
    assert config.rotate_time == "1h"
    assert config.log_level == "debug"
    assert given.beat_interval == 0


def test_unset_state_raises():
    client = NacosClient()
    with pytest.raises(RuntimeError, match="invalid client config"):
        _ = client.client_config
    with pytest.raises(RuntimeError, match="invalid server configs"):
        _ = client.server_configs
    with pytest.raises(RuntimeError, match="invalid http agent"):
        _ = client.http_agent
    assert client.has_http_agent is False


def test_server_config_defaults_filled():
    client = NacosClient()
    client.set_server_configs([ServerConfig("console.nacos.io", 80)])
    (config,) = client.server_configs
    assert config.context_path == "/nacos"
    assert config.scheme == "http"
    assert config.ip_addr == "console.nacos.io"


def test_empty_server_configs_are_valid():
    client = NacosClient()
    client.set_server_configs([])
    assert client.server_configs == []


@pytest.mark.parametrize(
    "bad",
    [ServerConfig("", 80), ServerConfig("host", 0), ServerConfig("host", 65536)],
)
def test_invalid_server_config(bad):
    client = NacosClient()
    with pytest.raises(ValueError, match=r"configs\[1\] is invalid"):
        client.set_server_configs([ServerConfig("ok", 8848), bad])


def test_http_agent_setter():
    client = NacosClient()
    agent = HttpAgent()
    client.http_agent = agent
    assert client.http_agent is agent
    with pytest.raises(ValueError):
        client.http_agent = None


def test_nacos_error_code():
    err = NacosError("404", "config not found")
    assert err.error_code == "404"
    assert "config not found" in str(err)
    assert NacosError(403).error_code == "403"


def test_agent_get_puts_params_in_query(server_url):
    resp = HttpAgent().request(
        "GET", server_url + "/v1/cs/configs", {"Request-Module": "Naming"}, 5000,
        {"dataId": "d", "group": "g"},
    )
    assert resp.status_code == 200
    payload = json.loads(resp.body)
    assert payload["method"] == "GET"
    assert payload["path"] == "/v1/cs/configs"
    assert payload["query"] == {"dataId": "d", "group": "g"}
    assert payload["custom"] == "Naming"


def test_agent_post_sends_form(server_url):
    resp = HttpAgent().request("POST", server_url + "/x", {}, 5000, {"content": "a b&c"})
    payload = json.loads(resp.body)
    assert payload["method"] == "POST"
    assert payload["form"] == {"content": "a b&c"}
    assert payload["query"] == {}
    assert payload["content_type"].startswith("application/x-www-form-urlencoded")


def test_agent_returns_error_status(server_url):
    resp = HttpAgent().request("DELETE", server_url + "/missing", None, 5000, None)
    assert resp.status_code == 404
    assert resp.body == "nope"