"""Bounded worker pool for accepted client sockets."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable

ClientAddress = tuple[str, int]
ClientHandler = Callable[[socket.socket, ClientAddress], None]

logger = logging.getLogger(__name__)

_STOP = None


class ThreadPool:
    """Fixed number of workers fed from a bounded connection queue.

    ``submit`` never blocks: a full queue is reported to the caller, which
    sheds the connection. ``shutdown`` closes every connection that was
    queued but never handled.
    """

    def __init__(self, worker_count: int, queue_size: int, handler: ClientHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._worker_count = worker_count
        self._jobs: queue.Queue[tuple[socket.socket, ClientAddress] | None] = queue.Queue(
            maxsize=queue_size
        )
        self._accepting = threading.Event()
        self._accepting.set()
        self._workers: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._workers)

    @property
    def pending(self) -> int:
        return self._jobs.qsize()

    def start(self) -> None:
        with self._lock:
            if self._workers:
                return
            for index in range(self._worker_count):
                worker = threading.Thread(
                    target=self._run_worker,
                    name=f"news-worker-{index}",
                    daemon=True,
                )
                self._workers.append(worker)
                worker.start()

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        """Queue a connection; False means the caller must shed it."""
        if not self._accepting.is_set():
            return False
        try:
            self._jobs.put_nowait((client_socket, address))
        except queue.Full:
            return False
        return True

    def shutdown(self) -> int:
        """Stop the workers and close queued connections; returns how many were closed."""
        with self._lock:
            if not self._accepting.is_set():
                return 0
            self._accepting.clear()

        closed = self._close_pending()
        for _ in self._workers:
            try:
                self._jobs.put_nowait(_STOP)
            except queue.Full:
                break
        for worker in self._workers:
            worker.join(timeout=1.0)

        # A worker may have been mid-get while the queue was drained.
        closed += self._close_pending()
        if closed:
            logger.info("Closed %d queued connections on shutdown", closed)
        return closed

    def _close_pending(self) -> int:
        closed = 0
        while True:
            try:
                job = self._jobs.get_nowait()
            except queue.Empty:
                return closed
            if job is _STOP:
                continue
            client_socket, _address = job
            try:
                client_socket.close()
            except OSError:
                logger.debug("Error closing queued connection", exc_info=True)
            closed += 1

    def _run_worker(self) -> None:
        while True:
            try:
                job = self._jobs.get(timeout=0.2)
            except queue.Empty:
                if not self._accepting.is_set():
                    return
                continue
            if job is _STOP:
                return
            client_socket, address = job
            if not self._accepting.is_set():
                client_socket.close()
                return
            try:
                self._handler(client_socket, address)
            except Exception:
                logger.exception("Unhandled error in connection worker")
