from __future__ import annotations

import threading
import time

import pytest

from timeout_lab.client import TimeoutAwareClient, release, saturate_backlog, send_with_deadline
from timeout_lab.config import LARGE_PAYLOAD_BYTES, TOLERANCE_MS, ClientConfig, FaultMode, ServerConfig
from timeout_lab.errors import BindError, Condition
from timeout_lab.server import FaultInjectingServer


def _client(port: int, **overrides: object) -> TimeoutAwareClient:
    return TimeoutAwareClient(ClientConfig(port=port, **overrides))


def test_address_requires_start() -> None:
    server = FaultInjectingServer(ServerConfig())
    with pytest.raises(RuntimeError):
        _ = server.address


def test_start_and_stop_are_idempotent() -> None:
    server = FaultInjectingServer(ServerConfig())
    server.start()
    port = server.port
    server.start()
    assert server.is_running()
    assert server.port == port
    server.stop()
    server.stop()
    assert not server.is_running()


def test_taken_port_raises_bind_error(start_server) -> None:
    first = start_server()
    second = FaultInjectingServer(ServerConfig(port=first.port))
    with pytest.raises(BindError) as info:
        second.start()
    assert info.value.port == first.port
    assert not second.is_running()


def test_normal_mode_echoes_and_closes_on_quit(start_server) -> None:
    server = start_server(mode=FaultMode.NORMAL)
    with _client(server.port) as client:
        assert client.connect()
        assert client.echo("Hello, Server!") == "Echo: Hello, Server!"
        assert client.echo("quit") == "Echo: quit"
        assert client.receive() is None
        assert client.last_condition is Condition.OTHER_FAILURE


def test_no_accept_times_out_connect_within_tolerance(start_server) -> None:
    server = start_server(mode=FaultMode.NO_ACCEPT)
    fillers = saturate_backlog("127.0.0.1", server.port)
    try:
        with _client(server.port, connect_timeout_ms=500) as client:
            assert not client.connect()
            assert client.last_condition is Condition.CONNECT_TIMEOUT
            assert abs(client.connect_ms - 500) <= TOLERANCE_MS
    finally:
        release(fillers)


def test_no_response_times_out_read_within_tolerance(start_server) -> None:
    server = start_server(mode=FaultMode.NO_RESPONSE)
    with _client(server.port, read_timeout_ms=300) as client:
        assert client.connect()
        assert client.echo("GET / HTTP/1.1") is None
        assert client.last_condition is Condition.READ_TIMEOUT
        assert abs(client.read_ms - 300) <= TOLERANCE_MS


def test_slow_response_deadline_applies_per_read(start_server) -> None:
    server = start_server(mode=FaultMode.SLOW_RESPONSE, slow_response_interval_sec=0.05)
    with _client(server.port, read_timeout_ms=200) as client:
        assert client.connect()
        assert client.echo("GET / HTTP/1.1") == "HTTP/1.1 200 OK"
        assert client.last_condition is None
        # the whole line took far longer than a single read deadline
        assert client.read_ms > 200


def test_slow_response_times_out_when_interval_exceeds_timeout(start_server) -> None:
    server = start_server(mode=FaultMode.SLOW_RESPONSE, slow_response_interval_sec=0.5)
    with _client(server.port, read_timeout_ms=200) as client:
        assert client.connect()
        assert client.echo("GET / HTTP/1.1") is None
        assert client.last_condition is Condition.READ_TIMEOUT


def test_stop_interrupts_live_connections(start_server) -> None:
    server = start_server(mode=FaultMode.NO_RESPONSE)
    with _client(server.port, read_timeout_ms=5000) as client:
        assert client.connect()
        assert client.send("GET / HTTP/1.1")
        time.sleep(0.1)
        started = time.perf_counter()
        server.stop()
        assert time.perf_counter() - started < 2.0
        assert client.receive() is None
        assert client.last_condition is Condition.OTHER_FAILURE


def test_partial_read_blocks_unbounded_send(start_server) -> None:
    server = start_server(mode=FaultMode.PARTIAL_READ, receive_buffer_bytes=4096)
    client = _client(server.port, read_timeout_ms=None, send_buffer_bytes=4096)
    assert client.connect()
    sender = threading.Thread(target=client.send, args=(b"X" * LARGE_PAYLOAD_BYTES,), daemon=True)
    sender.start()
    sender.join(timeout=0.5)
    assert sender.is_alive()
    client.abort()
    sender.join(timeout=2.0)
    assert not sender.is_alive()
    client.disconnect()


def test_partial_read_send_with_deadline_fails_at_deadline(start_server) -> None:
    server = start_server(mode=FaultMode.PARTIAL_READ, receive_buffer_bytes=4096)
    with _client(server.port, read_timeout_ms=None, send_buffer_bytes=4096) as client:
        assert client.connect()
        attempt = send_with_deadline(client, b"X" * LARGE_PAYLOAD_BYTES, 500)
        assert not attempt.sent
        assert attempt.timed_out
        assert attempt.interrupted
        assert abs(attempt.elapsed_ms - 500) <= TOLERANCE_MS
        assert client.last_condition is Condition.WRITE_TIMEOUT


def test_slow_read_accepts_small_payload(start_server) -> None:
    server = start_server(mode=FaultMode.SLOW_READ, slow_read_interval_sec=0.01)
    with _client(server.port, read_timeout_ms=None) as client:
        assert client.connect()
        attempt = send_with_deadline(client, b"x" * 100, 1000)
        assert attempt.sent
        assert not attempt.timed_out
        assert attempt.payload_bytes == 100


@pytest.mark.parametrize("mode", [FaultMode.NORMAL, FaultMode.NO_ACCEPT])
def test_immediate_stop_leaves_accept_thread_quiet(mode: FaultMode, monkeypatch: pytest.MonkeyPatch) -> None:
    errors: list[BaseException | None] = []
    monkeypatch.setattr(threading, "excepthook", lambda args: errors.append(args.exc_value))
    for _ in range(50):
        server = FaultInjectingServer(ServerConfig(mode=mode))
        server.start()
        server.stop()
        assert not server.is_running()
    assert errors == []
