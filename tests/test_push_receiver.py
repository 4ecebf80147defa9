import gzip
import json
import socket

import pytest

from nacos_sdk.naming_types import Service
from nacos_sdk.push_receiver import (
    PushData,
    PushReceiver,
    is_gzip,
    try_decompress_data,
)


class FakeReactor:
    def __init__(self, services=None):
        self.processed = []
        self._services = services or {}

    def process_service_json(self, result):
        self.processed.append(result)

    def services(self):
        return dict(self._services)


@pytest.fixture
def receiver_and_reactor():
    reactor = FakeReactor({"DEFAULT_GROUP@@DEMO": Service(name="DEFAULT_GROUP@@DEMO", clusters="a")})
    receiver = PushReceiver(reactor, "127.0.0.1")
    yield receiver, reactor
    receiver.close()


def test_is_gzip():
    assert is_gzip(gzip.compress(b"hello")) is True
    assert is_gzip(b"{}") is False
    assert is_gzip(b"\x1f") is False


def test_try_decompress_round_trip():
    text = '{"type":"dom"}'
    assert try_decompress_data(gzip.compress(text.encode())) == text
    assert try_decompress_data(text.encode()) == text


def test_try_decompress_bad_gzip_gives_empty():
    assert try_decompress_data(b"\x1f\x8bnot really gzip") == ""


def test_push_data_parse_and_errors():
    push = PushData.from_json(json.dumps({"type": "dom", "data": "x", "lastRefTime": 7}))
    assert push == PushData(push_type="dom", data="x", last_ref_time=7)
    with pytest.raises(ValueError):
        PushData.from_json("not json")
    with pytest.raises(ValueError):
        PushData.from_json(json.dumps({"type": "dom", "lastRefTime": "x"}))


def test_port_in_range(receiver_and_reactor):
    receiver, _ = receiver_and_reactor
    assert 54951 <= receiver.port <= 55950


def test_handle_service_push(receiver_and_reactor):
    receiver, reactor = receiver_and_reactor
    payload = json.dumps({"type": "service", "data": "{\"name\":\"s\"}", "lastRefTime": 12})
    ack = json.loads(receiver.handle_packet(payload.encode()))
    assert ack == {"type": "push-ack", "lastRefTime": "12", "data": ""}
    assert reactor.processed == ["{\"name\":\"s\"}"]


def test_handle_gzipped_dom_push(receiver_and_reactor):
    receiver, reactor = receiver_and_reactor
    payload = json.dumps({"type": "dom", "data": "d", "lastRefTime": 3}).encode()
    ack = json.loads(receiver.handle_packet(gzip.compress(payload)))
    assert ack["type"] == "push-ack"
    assert reactor.processed == ["d"]


def test_handle_dump(receiver_and_reactor):
    receiver, reactor = receiver_and_reactor
    payload = json.dumps({"type": "dump", "data": "", "lastRefTime": 5})
    ack = json.loads(receiver.handle_packet(payload.encode()))
    assert ack["type"] == "dump-ack"
    dumped = json.loads(ack["data"])
    assert dumped["DEFAULT_GROUP@@DEMO"]["name"] == "DEFAULT_GROUP@@DEMO"
    assert reactor.processed == []


def test_handle_unknown_and_invalid(receiver_and_reactor):
    receiver, reactor = receiver_and_reactor
    ack = json.loads(receiver.handle_packet(json.dumps({"type": "other", "lastRefTime": 1}).encode()))
    assert ack == {"type": "unknow-ack", "lastRefTime": "1", "data": ""}
    assert receiver.handle_packet(b"garbage") is None
    assert reactor.processed == []


def test_udp_round_trip(receiver_and_reactor):
    receiver, reactor = receiver_and_reactor
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.settimeout(5)
    try:
        payload = json.dumps({"type": "dom", "data": "udp", "lastRefTime": 9}).encode()
        client.sendto(payload, ("127.0.0.1", receiver.port))
        data, _ = client.recvfrom(4096)
    finally:
        client.close()
    assert json.loads(data) == {"type": "push-ack", "lastRefTime": "9", "data": ""}
    assert reactor.processed == ["udp"]