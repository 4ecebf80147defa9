# nacos_sdk

`nacos_sdk` is a Python client for a Nacos server. It covers both halves of what Nacos offers.

- **Configuration.** Fetch, publish, delete and search configuration entries, manage aggregate data, and listen for changes.
- **Naming.** Register and deregister service instances, keep ephemeral instances alive with heartbeats, look up services, choose an instance by weight, and subscribe to changes.

Both clients keep a local disk cache under `ClientConfig.cache_dir`:

- configuration contents go in `<cache_dir>/config`;
- service documents go in `<cache_dir>/naming`.

The package uses only the standard library.

## Installation

```
pip install nacos_sdk
```

## Creating clients

Describe the servers with `ServerConfig` and the client with `ClientConfig`. Both live in `nacos_sdk.nacos_client`.

When settings are applied, empty or zero fields get these defaults:

| Field | Default |
| --- | --- |
| `timeout_ms` | 10000 |
| `beat_interval` | 5000 |
| `update_thread_num` | 20 |
| `cache_dir` | `./cache` |
| `log_dir` | `./log` |
| `context_path` | `/nacos` |
| `scheme` | `http` |

A server config with an empty address, or a port outside 1–65535, raises `ValueError`.

```python
from nacos_sdk.nacos_client import ClientConfig, ServerConfig
from nacos_sdk.client_factory import (
    NacosClientParam,
    create_config_client,
    new_naming_client,
)

servers = [ServerConfig(ip_addr="127.0.0.1", port=8848, context_path="/nacos")]
client_config = ClientConfig(
    namespace_id="public-dev",
    timeout_ms=5000,
    not_load_cache_at_start=True,
    cache_dir="/tmp/nacos/cache",
)

config_client = create_config_client(
    {"serverConfigs": servers, "clientConfig": client_config}
)
naming_client = new_naming_client(
    NacosClientParam(client_config=client_config, server_configs=servers)
)
```

`create_config_client` and `create_naming_client` read the keys `"clientConfig"` and `"serverConfigs"` from a mapping. Values of the wrong type are ignored.

`new_config_client` and `new_naming_client` take a `NacosClientParam` instead.

If no server configs are given and `ClientConfig.endpoint` is empty, creation raises `ValueError("server configs not found in properties")`.

### Supplying your own HTTP transport

The factory functions always install the built-in `HttpAgent`, which uses `urllib`. To use a different transport, build a `NacosClient` yourself and hand it to a client class. The replacement needs a `request(method, url, headers, timeout_ms, params)` method that returns an `HttpResponse`.

```python
from nacos_sdk.nacos_client import NacosClient
from nacos_sdk.config_client import ConfigClient

base = NacosClient()
base.set_client_config(client_config)
base.set_server_configs(servers)
base.http_agent = my_agent
config_client = ConfigClient(base)
```

### How requests are sent

Each request goes to a randomly chosen server and is tried up to three times, moving on to the next server after each failure.

- A status other than 200 becomes a `NacosError` with `error_code` set to the status.
- If every attempt fails, the last error is raised.

## Configuration

```python
from nacos_sdk.config_types import ConfigParam, SearchConfigParam

config_client.publish_config(
    ConfigParam(data_id="app.yaml", group="DEFAULT_GROUP", content="key: value")
)
text = config_client.get_config(ConfigParam(data_id="app.yaml", group="DEFAULT_GROUP"))

def on_change(namespace, group, data_id, data):
    print(f"{group}/{data_id} changed: {data}")

config_client.listen_config(
    ConfigParam(data_id="app.yaml", group="DEFAULT_GROUP", on_change=on_change)
)
config_client.cancel_listen_config(ConfigParam(data_id="app.yaml", group="DEFAULT_GROUP"))

page = config_client.search_config(SearchConfigParam(search="blur", data_id="app*"))
config_client.delete_config(ConfigParam(data_id="app.yaml", group="DEFAULT_GROUP"))
config_client.close()
```

### Missing fields

Missing required fields raise `ValueError`.

| Method | Required fields |
| --- | --- |
| `get_config`, `delete_config`, `listen_config` | `data_id`, `group` |
| `publish_config` | `data_id`, `group`, `content` |
| `publish_aggr`, `remove_aggr` | `data_id`, `group`, `content`, `datum_id` |

### How `get_config` handles server answers

- **Success:** the content is returned and written to the local cache.
- **404:** it writes an empty cached copy and returns `""`.
- **403:** it raises `PermissionError`.
- **Any other failure:** it returns the cached copy. If there is none, it raises `config_client.ConfigFetchError`.

### Publishing, deleting and searching

`publish_config` and `delete_config` return `True` when the server answers `true`. A request failure or any other answer raises `config_proxy.ConfigOperationError`.

`search_config` works as follows:

- `search` must be `"accurate"` or `"blur"`; anything else raises `ValueError`.
- `page_no` defaults to 1 and `page_size` to 10.
- It returns a `ConfigPage`, or `None` when the server answers 404.
- A 403 answer raises `PermissionError`.

### Listening

Listening runs in background threads. Each polling task covers up to 3000 listened entries and long-polls the server with a 30-second hold.

When a change is reported, the client fetches the new content. A listener is called in its own thread only when the content's MD5 differs from the last one it saw.

`close()` stops all polling.

## Service discovery

```python
from nacos_sdk.naming_types import (
    RegisterInstanceParam,
    DeregisterInstanceParam,
    SelectInstancesParam,
    SelectOneHealthInstanceParam,
    SubscribeParam,
)

naming_client.register_instance(RegisterInstanceParam(
    service_name="orders", ip="10.0.0.10", port=8080,
    weight=10, enable=True, healthy=True, ephemeral=True,
))

healthy = naming_client.select_instances(
    SelectInstancesParam(service_name="orders", healthy_only=True)
)
one = naming_client.select_one_healthy_instance(
    SelectOneHealthInstanceParam(service_name="orders")
)

def on_services(services, error):
    if error is None:
        print([s.ip for s in services])

subscription = SubscribeParam(service_name="orders", subscribe_callback=on_services)
naming_client.subscribe(subscription)
naming_client.unsubscribe(subscription)

naming_client.deregister_instance(
    DeregisterInstanceParam(service_name="orders", ip="10.0.0.10", port=8080, ephemeral=True)
)
naming_client.close()
```

### Groups

When no group name is given, `DEFAULT_GROUP` is used. Services are addressed as `group@@service`.

### Registering and heartbeats

`register_instance` raises `ValueError` for an empty service name.

Ephemeral instances are handed to a `BeatReactor`, which sends heartbeats with at most 20 sending at once:

- The first period comes from the metadata key `preserved.heart.beat.interval`, given in milliseconds. The default is 5 s.
- After each beat, the period follows the `clientBeatInterval` the server returns.

`deregister_instance` stops the heartbeat before it deregisters the instance.

### Looking services up

`HostReactor` keeps services up to date in three ways:

- it queries the server on first use;
- it refreshes each service once its `cacheMillis` has passed;
- it accepts UDP pushes on a random port between 54951 and 55950.

A service that cannot be obtained raises `host_reactor.ServiceNotFoundError`.

When `update_cache_when_empty` is false, an update with no hosts does not replace a cached service.

### Selecting instances

| Method | What it returns |
| --- | --- |
| `select_all_instances` | Every instance. |
| `select_instances` | Enabled instances with positive weight whose health matches `healthy_only`. |
| `select_one_healthy_instance` | One healthy, enabled instance with positive weight, chosen at random by weight. |

`select_instances` and `select_one_healthy_instance` raise `naming_client.InstanceNotFoundError` when the service has no instances. `select_one_healthy_instance` also raises it when none of them is healthy.

The weighted choice uses `Chooser`, which counts weights by their integer part. A selection whose weights are all below 1 raises `ValueError`.

### Subscribing

Subscription callbacks receive a list of `SubscribeService` and an error, which is `None` on success. They are called when a service's host list changes.

When a change arrives with an empty host list, only the first callback is called, with an empty list and a `SubscribeError`.

`subscribe` behaves as follows:

- it requires a callback, and raises `ValueError` without one;
- it calls the callbacks once straight away, unless `not_load_cache_at_start` is set.

## Logging

The package logs through the standard `logging` module, with one logger per module (for example `nacos_sdk.config_client`). Configure handlers and levels as usual.

## What the package does not do

- **Endpoint lookup.** Server addresses are not looked up from `ClientConfig.endpoint`. Giving only an endpoint passes the first check but then fails with `ValueError("server configs not found")`, so server configs are required.
- **Encryption.** Configuration contents are not encrypted or decrypted. `open_kms`, `region_id` and data ids starting with `cipher-` get no special treatment.
- **Log files.** `log_dir`, `log_level`, `rotate_time` and `max_age` are filled with defaults but do not configure any log files.
- **Credentials.** `access_key` and `secret_key` are only sent as the `accessKey` and `secretKey` headers of configuration requests. No request signing is done.

## Running the tests

```
pip install -e .[test]
pytest
```