from types import SimpleNamespace

import pytest

from nacos_sdk.config_proxy import (
    CONFIG_AGG_PATH,
    CONFIG_LISTEN_PATH,
    CONFIG_PATH,
    ConfigOperationError,
    ConfigProxy,
)
from nacos_sdk.config_types import ConfigParam, SearchConfigParam
from nacos_sdk.nacos_client import NacosError

BASE = "http://console.nacos.io:80/nacos"


class FakeAgent:
    def __init__(self, status=200, body=""):
        self.status = status
        self.body = body
        self.calls = []

    def request(self, method, url, headers, timeout_ms, params):
        self.calls.append(SimpleNamespace(method=method, url=url, headers=headers,
                                          timeout_ms=timeout_ms, params=params))
        return SimpleNamespace(status_code=self.status, body=self.body)


def make_proxy(agent):
    server = SimpleNamespace(ip_addr="console.nacos.io", port=80, scheme="http",
                             context_path="/nacos")
    client = SimpleNamespace(timeout_ms=10000)
    return ConfigProxy([server], client, agent)


PARAM = ConfigParam(data_id="dataId", group="group:env")


def test_get_config_request():
    agent = FakeAgent(200, "content")
    result = make_proxy(agent).get_config(PARAM, "", "ak", "placeholder")
    assert result == "content"
    call = agent.calls[0]
    assert call.method == "GET"
    assert call.url == BASE + CONFIG_PATH
    assert call.url == "http://console.nacos.io:80/nacos/v1/cs/configs"
    assert call.params == {"dataId": "dataId", "group": "group:env"}
    assert call.timeout_ms == 10000
    assert call.headers["accessKey"] == "ak"


def test_get_config_with_tenant():
    agent = FakeAgent(200, "x")
    make_proxy(agent).get_config(PARAM, "tenant", "", "")
    assert agent.calls[0].params["tenant"] == "tenant"


def test_get_config_error_retries_three_times():
    agent = FakeAgent(401, "no security")
    with pytest.raises(NacosError):
        make_proxy(agent).get_config(PARAM, "", "", "")
    assert len(agent.calls) == 3


def test_publish_config_true():
    agent = FakeAgent(200, "true")
    param = ConfigParam(data_id="dataId", group="group:env", content="content")
    assert make_proxy(agent).publish_config(param, "", "", "") is True
    assert agent.calls[0].method == "POST"
    assert agent.calls[0].params == {"dataId": "dataId", "group": "group:env",
                                     "content": "content"}


def test_publish_config_false_body():
    agent = FakeAgent(200, "false")
    with pytest.raises(ConfigOperationError, match="publish config failed:false"):
        make_proxy(agent).publish_config(PARAM, "", "", "")
    assert len(agent.calls) == 1


def test_publish_config_http_error():
    agent = FakeAgent(401, "no security")
    with pytest.raises(ConfigOperationError):
        make_proxy(agent).publish_config(PARAM, "", "", "")
    assert len(agent.calls) == 3


def test_delete_config():
    agent = FakeAgent(200, "true")
    assert make_proxy(agent).delete_config(PARAM, "", "", "") is True
    assert agent.calls[0].method == "DELETE"


def test_delete_config_false_body():
    agent = FakeAgent(200, "false")
    with pytest.raises(ConfigOperationError):
        make_proxy(agent).delete_config(PARAM, "", "", "")


@pytest.mark.parametrize("name,method", [("publish_aggr", "addDatum"),
                                         ("delete_aggr", "deleteDatum")])
def test_aggr_requests(name, method):
    agent = FakeAgent(200, "ok")
    param = ConfigParam(data_id="d", group="g", content="c", datum_id="1")
    assert getattr(make_proxy(agent), name)(param, "", "", "") is True
    call = agent.calls[0]
    assert call.url == BASE + CONFIG_AGG_PATH
    assert call.params["method"] == method
    assert call.params["datumId"] == "1"


def test_aggr_failure():
    agent = FakeAgent(500, "boom")
    with pytest.raises(ConfigOperationError):
        make_proxy(agent).publish_aggr(PARAM, "", "", "")


def test_search_config_parses_page():
    body = ('{"totalCount": 1, "pageNumber": 1, "pagesAvailable": 1,'
            ' "pageItems": [{"dataId": "d", "group": "g", "content": "c"}]}')
    agent = FakeAgent(200, body)
    page = make_proxy(agent).search_config(SearchConfigParam(search="blur"), "", "", "")
    assert page.total_count == 1
    assert page.page_items[0].data_id == "d"
    assert agent.calls[0].params["group"] == ""
    assert agent.calls[0].params["dataId"] == ""
    assert agent.calls[0].params["search"] == "blur"


def test_search_config_malformed():
    agent = FakeAgent(200, "[1, 2]")
    with pytest.raises(ValueError):
        make_proxy(agent).search_config(SearchConfigParam(search="blur"), "", "", "")


def test_listen_config_headers_and_timeout():
    agent = FakeAgent(200, "")
    params = {"Listening-Configs": "abc"}
    make_proxy(agent).listen_config(params, True, "tenant", "", "")
    call = agent.calls[0]
    assert call.url == BASE + CONFIG_LISTEN_PATH
    assert call.headers["Long-Pulling-Timeout"] == "30000"
    assert call.headers["Long-Pulling-Timeout-No-Hangup"] == "true"
    assert call.timeout_ms == 33000
    assert call.params["tenant"] == "tenant"
    assert "tenant" not in params


def test_listen_config_not_initializing():
    agent = FakeAgent(200, "changed")
    assert make_proxy(agent).listen_config({}, False, "", "", "") == "changed"
    assert "Long-Pulling-Timeout-No-Hangup" not in agent.calls[0].headers


def test_no_servers():
    with pytest.raises(ValueError):
        ConfigProxy([], SimpleNamespace(timeout_ms=1000), FakeAgent())