"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket
import time

from config import LINGER_TIMEOUT_SECS, MAX_DRAIN_BYTES
from response import HTTPResponse


class HTTPReadError(Exception):
    """Raised when a client request cannot be read from the socket."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


class ConnectionFailedError(HTTPReadError):
    """Raised when the socket read fails outright."""


def read_http_request(client_socket: socket.socket, max_request_size: int) -> bytes:
    """Read a single request buffer of at most ``max_request_size`` bytes.

    Exactly one ``recv`` is issued; the caller decides what a short or
    capacity-filled read means. An empty result means the peer closed.
    """
    try:
        return client_socket.recv(max_request_size)
    except socket.timeout as exc:
        raise SocketTimeoutError("Timed out waiting for request bytes") from exc
    except OSError as exc:
        raise ConnectionFailedError(str(exc)) from exc


def write_http_response_message(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write the response head, then the body when there is one."""
    head = response.head_bytes()
    client_socket.sendall(head)
    bytes_sent = len(head)
    if response.body:
        client_socket.sendall(response.body)
        bytes_sent += len(response.body)
    return bytes_sent


def close_after_response(
    client_socket: socket.socket,
    *,
    linger_secs: float = LINGER_TIMEOUT_SECS,
    max_drain_bytes: int = MAX_DRAIN_BYTES,
) -> int:
    """Half-close the socket and discard unread request bytes.

    Unread input at close turns the FIN into a reset that drops the
    response. Draining stops at EOF, after ``linger_secs`` or after
    ``max_drain_bytes``. Returns the number of bytes discarded.
    """
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        return 0

    deadline = time.monotonic() + linger_secs
    drained = 0
    while drained < max_drain_bytes:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        client_socket.settimeout(remaining)
        try:
            chunk = client_socket.recv(4096)
        except OSError:
            break
        if not chunk:
            break
        drained += len(chunk)
    return drained
