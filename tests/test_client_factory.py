import pytest

from nacos_sdk.client_factory import (
    NacosClientParam,
    build_nacos_client,
    create_config_client,
    get_config_param,
    new_config_client,
)
from nacos_sdk.config_client import ConfigClient
from nacos_sdk.nacos_client import ClientConfig, ServerConfig

NAMESPACE = "e525eafa-f7d7-4029-83d9-008937f9d468"


def _server():
    return ServerConfig(ip_addr="console.nacos.io", port=80, context_path="/nacos", scheme="http")


def _client_config(tmp_path):
    return ClientConfig(
        namespace_id=NAMESPACE,
        timeout_ms=5000,
        not_load_cache_at_start=True,
        cache_dir=str(tmp_path),
    )


def test_build_without_servers_fails():
    with pytest.raises(ValueError, match="server configs not found in properties"):
        build_nacos_client(NacosClientParam())


def test_map_and_struct_params_give_same_client(tmp_path):
    servers = [_server()]
    config = _client_config(tmp_path)
    from_map = build_nacos_client(get_config_param({"serverConfigs": servers, "clientConfig": config}))
    from_struct = build_nacos_client(NacosClientParam(client_config=config, server_configs=servers))
    assert from_map.client_config == from_struct.client_config
    assert from_map.server_configs == from_struct.server_configs
    assert from_map.client_config.namespace_id == NAMESPACE
    assert from_map.client_config.timeout_ms == 5000
    assert from_map.server_configs[0].ip_addr == "console.nacos.io"
    assert from_map.server_configs[0].port == 80


def test_get_config_param_ignores_wrong_types():
    param = get_config_param({"clientConfig": {"namespace_id": "x"}, "serverConfigs": ["nope"]})
    assert param.client_config is None
    assert param.server_configs == []


def test_get_config_param_reads_values(tmp_path):
    config = _client_config(tmp_path)
    param = get_config_param({"clientConfig": config, "serverConfigs": [_server()]})
    assert param.client_config == config
    assert param.server_configs == [_server()]


def test_create_config_client_without_servers_fails():
    with pytest.raises(ValueError):
        create_config_client({"clientConfig": "not a config"})


def test_new_config_client_uses_cache_dir(tmp_path):
    client = new_config_client(
        NacosClientParam(client_config=_client_config(tmp_path), server_configs=[_server()])
    )
    try:
        assert isinstance(client, ConfigClient)
        assert client.config_cache_dir.startswith(str(tmp_path))
        assert client.config_cache_dir.endswith("config")
    finally:
        client.close()