"""News server entry point and per-connection request pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import time
from pathlib import Path

from config import (
    HOST,
    INDEX_PATH,
    LOG_FORMAT,
    LOG_FORMATS,
    PORT,
    REQUEST_QUEUE_SIZE,
    STATIC_ROOT,
    WORKER_COUNT,
    ServerConfig,
)
from handlers.static_handlers import serve_target
from metrics import MetricsRegistry
from request import HTTPRequestParseError, RequestAborted, RequestLine
from resolver import resolve_target
from response import HTTPResponse, as_head_response, error_response
from socket_handler import (
    HTTPReadError,
    close_after_response,
    read_http_request,
    write_http_response_message,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)


def build_response(raw: bytes, config: ServerConfig) -> tuple[RequestLine | None, HTTPResponse]:
    """Run parse, resolve and build for one raw request buffer.

    Returns the validated request line (``None`` when the request was
    rejected) together with the response to send. Raises
    ``RequestAborted`` when nothing should be written back.
    """
    try:
        request = RequestLine.from_bytes(raw, config)
    except HTTPRequestParseError as exc:
        return None, error_response(exc.status_code)

    response = serve_target(resolve_target(request.path, config), config)
    if request.is_head:
        response = as_head_response(response)
    return request, response


def handle_raw_request(raw: bytes, config: ServerConfig) -> bytes | None:
    """Return the wire bytes for ``raw``, or ``None`` if the connection is dropped."""
    try:
        _request, response = build_response(raw, config)
    except RequestAborted:
        return None
    return response.to_bytes()


class HTTPServer:
    def __init__(self, config: ServerConfig | None = None) -> None:
        self.config = config or ServerConfig()
        self.host = self.config.host
        self.port = self.config.port

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False
        self.metrics = MetricsRegistry()

    def start(self) -> None:
        """Listen and hand each accepted connection to the worker pool."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
            server_socket.settimeout(0.2)
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.config.worker_count,
                queue_size=self.config.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()
            logger.info("Listening on %s:%s", self.host, self.port)

            self._running = True
            try:
                while self._running:
                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        break

                    if self._pool is None or not self._pool.submit(client_socket, address):
                        self._send_queue_full_response(client_socket, address)
            finally:
                if self._pool is not None:
                    self._pool.shutdown()
                    self._pool = None

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None
        if self._pool is not None:
            self._pool.shutdown()
            self._pool = None

    def _send_queue_full_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
    ) -> None:
        with client_socket:
            started_at = time.perf_counter()
            self.metrics.connection_rejected()
            response = error_response(503)
            client_socket.settimeout(self.config.socket_timeout_secs)
            try:
                bytes_sent = write_http_response_message(client_socket, response)
            except OSError as exc:
                self.metrics.record_write_error(exc.__class__.__name__)
                return
            self._record_and_log(
                address=address,
                method="-",
                path="-",
                response=response,
                payload_size=bytes_sent,
                bytes_in=0,
                started_at=started_at,
            )
            close_after_response(client_socket)

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            self.metrics.connection_opened()
            client_socket.settimeout(self.config.socket_timeout_secs)
            started_at = time.perf_counter()
            try:
                try:
                    raw_request = read_http_request(client_socket, self.config.max_request_size)
                except HTTPReadError as exc:
                    self.metrics.record_read_error(exc.__class__.__name__)
                    self.metrics.connection_aborted()
                    logger.debug("Dropping connection from %s: %s", address[0], exc)
                    return

                try:
                    request, response = build_response(raw_request, self.config)
                except RequestAborted:
                    self.metrics.connection_aborted()
                    logger.debug("Connection from %s closed without a request", address[0])
                    return
                except Exception:
                    logger.exception("Unhandled error while handling request")
                    request, response = None, error_response(500)

                try:
                    bytes_sent = write_http_response_message(client_socket, response)
                except OSError as exc:
                    self.metrics.record_write_error(exc.__class__.__name__)
                    return

                self._record_and_log(
                    address=address,
                    method=request.method if request is not None else "-",
                    path=request.path if request is not None else "-",
                    response=response,
                    payload_size=bytes_sent,
                    bytes_in=len(raw_request),
                    started_at=started_at,
                )
                close_after_response(client_socket)
            finally:
                self.metrics.connection_closed()

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        response: HTTPResponse,
        payload_size: int,
        bytes_in: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        self.metrics.record_request(
            status_code=response.status_code,
            bytes_sent=payload_size,
        )
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": response.status_code,
            "bytes_in": bytes_in,
            "bytes_out": payload_size,
            "latency_ms": round(duration_ms, 3),
        }
        if self.config.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the static news server")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--index", default=INDEX_PATH)
    parser.add_argument("--static-root", default=STATIC_ROOT)
    parser.add_argument("--workers", type=int, default=WORKER_COUNT)
    parser.add_argument("--queue-size", type=int, default=REQUEST_QUEUE_SIZE)
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=LOG_FORMAT)
    return parser


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        host=args.host,
        port=args.port,
        index_path=Path(args.index),
        static_root=Path(args.static_root),
        worker_count=args.workers,
        request_queue_size=args.queue_size,
        log_format=args.log_format,
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))
    logging.basicConfig(level=logging.INFO)

    # Fail fast if static content is missing
    if not config.index_path.exists():
        logger.error("FATAL: index.html not found at %s", config.index_path)
        return 1

    logger.info("Starting news service")
    server = HTTPServer(config)
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
