"""UDP listener for service pushes sent by the naming server."""

from __future__ import annotations

import gzip
import json
import logging
import random
import socket
import threading
import zlib
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
PORT_BASE = 54951
PORT_RANGE = 1000
LISTEN_ATTEMPTS = 3
RECEIVE_BUFFER = 4024
RETRY_DELAY = 5.0


class PushTarget(Protocol):
    def process_service_json(self, result: str) -> None: ...

    def services(self) -> dict[str, Any]: ...


def is_gzip(data: bytes) -> bool:
    """Return whether ``data`` starts with the gzip magic bytes."""
    return len(data) >= 2 and data.startswith(GZIP_MAGIC)


def try_decompress_data(data: bytes) -> str:
    """Return ``data`` as text, gunzipping it first if needed; "" if that fails."""
    if not is_gzip(data):
        return data.decode("utf-8", errors="replace")
    try:
        raw = gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        logger.error("failed to decompress gzip data,err:%s", exc)
        return ""
    return raw.decode("utf-8", errors="replace")


@dataclass
class PushData:
    push_type: str = ""
    data: str = ""
    last_ref_time: int = 0

    @classmethod
    def from_json(cls, text: str) -> PushData:
        """Parse a push message; raise ValueError if it is malformed."""
        obj = json.loads(text)
        if not isinstance(obj, dict):
            raise ValueError("push data must be a JSON object")
        push_type = obj.get("type", "")
        data = obj.get("data", "")
        last_ref = obj.get("lastRefTime", 0)
        if not isinstance(push_type, str) or not isinstance(data, str):
            raise ValueError("type and data must be strings")
        if isinstance(last_ref, bool) or not isinstance(last_ref, int):
            raise ValueError("lastRefTime must be an integer")
        return cls(push_type=push_type, data=data, last_ref_time=last_ref)


def _service_json_value(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    return to_dict() if callable(to_dict) else value


class PushReceiver:
    """Listens on a random UDP port and hands service pushes to a host reactor."""

    def __init__(self, host_reactor: PushTarget, host: str = "") -> None:
        self._reactor = host_reactor
        self._host = host
        self._port = 0
        self._closed = threading.Event()
        self._sock: socket.socket | None = self._open()
        self._thread = threading.Thread(target=self._serve, name="push-receiver", daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self._port

    def _try_listen(self) -> socket.socket | None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self._host, self._port))
        except OSError as exc:
            logger.error("error listening %s:%d,err:%s", self._host, self._port, exc)
            sock.close()
            return None
        sock.settimeout(0.5)
        return sock

    def _open(self) -> socket.socket | None:
        for _ in range(LISTEN_ATTEMPTS):
            self._port = PORT_BASE + random.randrange(PORT_RANGE)
            sock = self._try_listen()
            if sock is not None:
                logger.info("udp server start, port: %d", self._port)
                return sock
        logger.error("failed to start udp server after trying %d times.", LISTEN_ATTEMPTS)
        return None

    def _serve(self) -> None:
        while not self._closed.is_set():
            sock = self._sock
            if sock is None:
                if self._closed.wait(RETRY_DELAY):
                    return
                self._sock = self._open()
                continue
            try:
                data, addr = sock.recvfrom(RECEIVE_BUFFER)
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    return
                logger.error("failed to read UDP msg because of %s", exc)
                self._closed.wait(0.1)
                continue
            ack = self.handle_packet(data)
            if ack is None:
                continue
            try:
                sock.sendto(ack, addr)
            except OSError as exc:
                logger.error("WriteToUDP failed,err:%s", exc)

    def handle_packet(self, data: bytes) -> bytes | None:
        """Process one received datagram and return the acknowledgement to send."""
        text = try_decompress_data(data)
        logger.info("receive push: %s", text)
        try:
            push = PushData.from_json(text)
        except ValueError as exc:
            logger.info("failed to process push data.err:%s", exc)
            return None
        if push.push_type in ("dom", "service"):
            self._reactor.process_service_json(push.data)
            ack_type, ack_data = "push-ack", ""
        elif push.push_type == "dump":
            dump = {key: _service_json_value(v) for key, v in self._reactor.services().items()}
            ack_type, ack_data = "dump-ack", json.dumps(dump, separators=(",", ":"))
        else:
            ack_type, ack_data = "unknow-ack", ""
        ack = {"type": ack_type, "lastRefTime": str(push.last_ref_time), "data": ack_data}
        return json.dumps(ack, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def close(self) -> None:
        """Stop listening and release the socket."""
        self._closed.set()
        sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)