from nacos_sdk.naming_types import Instance, Service, get_group_name, get_service_cache_key
from nacos_sdk.subscribe_callback import SubscribeCallback, SubscribeError

SERVICE_NAME = get_group_name("Test", "public")
CLUSTERS = ",".join(["default"])


def make_service(hosts=True):
    host = Instance(
        valid=True,
        enable=True,
        instance_id="123",
        port=8080,
        ip="127.0.0.1",
        weight=10,
        service_name="public@@Test",
        cluster_name=CLUSTERS,
    )
    return Service(
        name="public@@Test",
        clusters=CLUSTERS,
        cache_millis=10000,
        checksum="abcd",
        hosts=[host] if hosts else [],
    )


def test_add_callback():
    ed = SubscribeCallback()

    def callback(services, err):
        pass

    ed.add_callback(SERVICE_NAME, CLUSTERS, callback)
    key = get_service_cache_key(SERVICE_NAME, CLUSTERS)
    assert list(ed._callbacks.items()) == [key]
    funcs = ed.callbacks(SERVICE_NAME, CLUSTERS)
    assert len(funcs) == 1
    assert funcs[0] is callback


def test_remove_callback():
    ed = SubscribeCallback()

    def callback1(services, err):
        pass

    def callback2(services, err):
        pass

    ed.add_callback(SERVICE_NAME, CLUSTERS, callback1)
    assert len(ed._callbacks.items()) == 1
    ed.add_callback(SERVICE_NAME, CLUSTERS, callback2)
    assert len(ed._callbacks.items()) == 1
    assert ed.callbacks(SERVICE_NAME, CLUSTERS) == [callback1, callback2]

    ed.remove_callback(SERVICE_NAME, CLUSTERS, callback2)
    funcs = ed.callbacks(SERVICE_NAME, CLUSTERS)
    assert len(funcs) == 1
    assert funcs[0] is callback1


def test_remove_unknown_key_keeps_map_empty():
    ed = SubscribeCallback()
    ed.remove_callback("nope", "", lambda s, e: None)
    assert ed.callbacks("nope", "") == []


def test_service_changed_calls_every_callback():
    ed = SubscribeCallback()
    received = []

    def first(services, err):
        received.append(("one", services, err))

    def second(services, err):
        received.append(("two", services, err))

    ed.add_callback(SERVICE_NAME, CLUSTERS, first)
    ed.add_callback(SERVICE_NAME, CLUSTERS, second)
    ed.service_changed(make_service())

    assert [entry[0] for entry in received] == ["one", "two"]

    _, services, err = received[0]
    assert err is None
    assert len(services) == 1
    sub = services[0]
    assert (sub.ip, sub.port, sub.instance_id) == ("127.0.0.1", 8080, "123")
    assert sub.enable is True
    assert sub.valid is True
    assert sub.service_name == "public@@Test"
    assert sub.cluster_name == CLUSTERS

    _, other_services, other_err = received[1]
    assert other_err is None
    assert [s.ip for s in other_services] == ["127.0.0.1"]
    assert [s.port for s in other_services] == [8080]


def test_service_changed_with_no_hosts_reports_error_once():
    ed = SubscribeCallback()
    received = []
    ed.add_callback(SERVICE_NAME, CLUSTERS, lambda services, err: received.append((services, err)))
    ed.add_callback(SERVICE_NAME, CLUSTERS, lambda services, err: received.append((services, err)))
    ed.service_changed(make_service(hosts=False))
    assert len(received) == 1
    services, err = received[0]
    assert services == []
    assert isinstance(err, SubscribeError)


def test_service_changed_ignores_nameless_service():
    ed = SubscribeCallback()
    received = []
    ed.add_callback("", CLUSTERS, lambda services, err: received.append(services))
    ed.service_changed(Service(name="", clusters=CLUSTERS))
    ed.service_changed(None)
    assert received == []