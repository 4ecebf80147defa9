import os

import pytest

from nacos_sdk.disk_cache import (
    ConfigCacheError,
    get_file_name,
    read_config_from_file,
    read_services_from_file,
    write_config_to_file,
    write_services_to_file,
)
from nacos_sdk.naming_types import Instance, Service, get_service_cache_key


def test_get_file_name():
    name = get_file_name("nacos@@providers:org.apache.dubbo.UserProvider:hangzhou", "tmp")
    if os.name == "nt":
        expected = "tmp\\nacos@@providers&&org.apache.dubbo.UserProvider&&hangzhou"
    else:
        expected = "tmp/nacos@@providers:org.apache.dubbo.UserProvider:hangzhou"
    assert name == expected


def test_config_round_trip_creates_directory(tmp_path):
    cache_dir = str(tmp_path / "config")
    write_config_to_file("d@@g@@t", cache_dir, "hello world!!@#$%^&&*()")
    assert os.path.isdir(cache_dir)
    assert read_config_from_file("d@@g@@t", cache_dir) == "hello world!!@#$%^&&*()"


def test_config_overwrite_with_empty(tmp_path):
    cache_dir = str(tmp_path)
    write_config_to_file("k", cache_dir, "content")
    write_config_to_file("k", cache_dir, "")
    assert read_config_from_file("k", cache_dir) == ""


def test_read_missing_config_raises(tmp_path):
    with pytest.raises(ConfigCacheError, match="failed to read config cache file"):
        read_config_from_file("missing", str(tmp_path))


def test_services_round_trip(tmp_path):
    cache_dir = str(tmp_path / "naming")
    service = Service(
        name="DEFAULT_GROUP@@DEMO",
        clusters="a",
        cache_millis=1000,
        hosts=[Instance(ip="10.10.10.10", port=8888, weight=1.0, enable=True)],
    )
    other = Service(name="DEFAULT_GROUP@@OTHER")
    write_services_to_file(service, cache_dir)
    write_services_to_file(other, cache_dir)
    loaded = read_services_from_file(cache_dir)
    assert loaded == {
        get_service_cache_key(service.name, service.clusters): service,
        get_service_cache_key(other.name, other.clusters): other,
    }


def test_read_services_skips_broken_files(tmp_path):
    (tmp_path / "broken").write_text("not json", encoding="utf-8")
    write_services_to_file(Service(name="svc"), str(tmp_path))
    loaded = read_services_from_file(str(tmp_path))
    assert list(loaded) == ["svc"]


def test_read_services_from_missing_dir(tmp_path):
    assert read_services_from_file(str(tmp_path / "nowhere")) == {}