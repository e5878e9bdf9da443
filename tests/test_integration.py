"""Socket-level integration tests for the news server."""

import json
import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from config import ServerConfig
from server import HTTPServer

INDEX_BODY = b"<h1>News</h1>"


def _build_config(tmp_path: Path, **overrides: object) -> ServerConfig:
    (tmp_path / "entries").mkdir(exist_ok=True)
    (tmp_path / "index.html").write_bytes(INDEX_BODY)
    (tmp_path / "style.css").write_bytes(b"p { margin: 0; }")
    (tmp_path / "entries" / "hello.html").write_bytes(b"<p>hello</p>")
    settings = {
        "port": 0,
        "index_path": tmp_path / "index.html",
        "static_root": tmp_path,
    }
    settings.update(overrides)
    return ServerConfig(**settings)


def _start_server(server: HTTPServer) -> threading.Thread:
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()

    deadline = time.time() + 3
    while server.port == 0 and time.time() < deadline:
        time.sleep(0.01)

    if server.port == 0:
        raise RuntimeError("Server did not bind to a port")
    return thread


def _stop_server(server: HTTPServer, thread: threading.Thread) -> None:
    server.stop()
    thread.join(timeout=2.0)


def _recv_all(sock: socket.socket) -> bytes:
    buffer = bytearray()
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return bytes(buffer)
        buffer.extend(chunk)


def _send_raw(host: str, port: int, payload: bytes) -> bytes:
    with socket.create_connection((host, port), timeout=2.0) as client:
        client.sendall(payload)
        return _recv_all(client)


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_get_root_returns_200(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        response = _send_raw(server.host, server.port, b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
    finally:
        _stop_server(server, thread)

    assert response.startswith(b"HTTP/1.1 200 OK")
    assert response.endswith(b"\r\n\r\n" + INDEX_BODY)


def test_post_is_rejected(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        response = _send_raw(server.host, server.port, b"POST / HTTP/1.1\r\nHost: localhost\r\n\r\n")
    finally:
        _stop_server(server, thread)

    assert response.startswith(b"HTTP/1.1 405")


def test_oversized_request_line_is_rejected(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        payload = f"GET /{'A' * 2000} HTTP/1.1\r\n\r\n".encode("ascii")
        response = _send_raw(server.host, server.port, payload)
    finally:
        _stop_server(server, thread)

    assert response.startswith(b"HTTP/1.1 400")


def test_request_larger_than_read_buffer_gets_431(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        payload = b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 20000 + b"\r\n\r\n"
        response = _send_raw(server.host, server.port, payload)
    finally:
        _stop_server(server, thread)

    assert response.startswith(b"HTTP/1.1 431 Request Header Fields Too Large")
    assert server.metrics.snapshot()["status_counts"] == {"431": 1}


def test_unread_request_bytes_are_drained_before_close(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path, max_request_size=64))
    thread = _start_server(server)
    try:
        payload = b"GET / HTTP/1.1\r\n" + b"X-Filler: x\r\n" * 500 + b"\r\n"
        responses = [_send_raw(server.host, server.port, payload) for _ in range(3)]
    finally:
        _stop_server(server, thread)

    assert all(response.startswith(b"HTTP/1.1 431 ") for response in responses)


def test_head_stylesheet_has_no_body(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        response = _send_raw(server.host, server.port, b"HEAD /style.css HTTP/1.1\r\n\r\n")
    finally:
        _stop_server(server, thread)

    head, body = response.split(b"\r\n\r\n", 1)
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert b"Content-Length: 16\r\n" in head + b"\r\n"
    assert b"Cache-Control: no-store" in head
    assert body == b""


def test_concurrent_requests(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path, worker_count=4, request_queue_size=32))
    thread = _start_server(server)
    payload = b"GET /entries/hello.html HTTP/1.1\r\nHost: localhost\r\n\r\n"
    try:
        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [
                executor.submit(_send_raw, server.host, server.port, payload)
                for _ in range(10)
            ]
            responses = [future.result() for future in futures]
    finally:
        _stop_server(server, thread)

    assert all(response.startswith(b"HTTP/1.1 200 OK") for response in responses)
    assert server.metrics.snapshot()["status_counts"] == {"200": 10}


def test_closed_connection_gets_no_response(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path))
    thread = _start_server(server)
    try:
        with socket.create_connection((server.host, server.port), timeout=2.0) as client:
            client.shutdown(socket.SHUT_WR)
            response = _recv_all(client)
        aborted = _wait_for(lambda: server.metrics.snapshot()["aborted_connections"] == 1)
    finally:
        _stop_server(server, thread)

    assert response == b""
    assert aborted
    assert server.metrics.snapshot()["requests_total"] == 0


def test_silent_client_times_out_without_response(tmp_path: Path) -> None:
    server = HTTPServer(_build_config(tmp_path, socket_timeout_secs=0.2))
    thread = _start_server(server)
    try:
        with socket.create_connection((server.host, server.port), timeout=2.0) as client:
            response = _recv_all(client)
        recorded = _wait_for(
            lambda: server.metrics.snapshot()["read_errors_by_type"].get("SocketTimeoutError") == 1
        )
    finally:
        _stop_server(server, thread)

    assert response == b""
    assert recorded


class SlowHTTPServer(HTTPServer):
    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        time.sleep(0.3)
        super()._handle_client(client_socket, address)


def test_server_returns_503_when_queue_is_saturated(tmp_path: Path) -> None:
    server = SlowHTTPServer(_build_config(tmp_path, worker_count=1, request_queue_size=1))
    thread = _start_server(server)
    payload = b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n"
    try:
        with ThreadPoolExecutor(max_workers=3) as executor:
            futures = [
                executor.submit(_send_raw, server.host, server.port, payload)
                for _ in range(3)
            ]
            responses = [future.result() for future in futures]
    finally:
        _stop_server(server, thread)

    assert any(response.startswith(b"HTTP/1.1 503 Service Unavailable") for response in responses)
    assert server.metrics.snapshot()["rejected_connections"] >= 1


def test_access_log_json_format(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    server = HTTPServer(_build_config(tmp_path, log_format="json"))
    thread = _start_server(server)
    try:
        with caplog.at_level(logging.INFO, logger="server"):
            _send_raw(server.host, server.port, b"GET /entries/hello.html HTTP/1.1\r\n\r\n")
    finally:
        _stop_server(server, thread)

    events = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "server" and record.getMessage().startswith("{")
    ]
    assert len(events) == 1
    assert events[0]["method"] == "GET"
    assert events[0]["path"] == "/entries/hello.html"
    assert events[0]["status"] == 200
