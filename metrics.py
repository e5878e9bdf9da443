"""Thread-safe in-memory counters for the news server."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._active_connections = 0
        self._connections_total = 0
        self._aborted_connections = 0
        self._rejected_connections = 0
        self._status_counts: Counter[str] = Counter()
        self._bytes_sent_total = 0
        self._read_errors_by_type: Counter[str] = Counter()
        self._write_errors_by_type: Counter[str] = Counter()

    def connection_opened(self) -> None:
        with self._lock:
            self._active_connections += 1
            self._connections_total += 1

    def connection_closed(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    def connection_aborted(self) -> None:
        with self._lock:
            self._aborted_connections += 1

    def connection_rejected(self) -> None:
        with self._lock:
            self._rejected_connections += 1

    def record_request(self, status_code: int, bytes_sent: int) -> None:
        with self._lock:
            self._total_requests += 1
            self._status_counts[str(status_code)] += 1
            self._bytes_sent_total += bytes_sent

    def record_read_error(self, error_type: str) -> None:
        with self._lock:
            self._read_errors_by_type[error_type] += 1

    def record_write_error(self, error_type: str) -> None:
        with self._lock:
            self._write_errors_by_type[error_type] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "requests_total": self._total_requests,
                "active_connections": self._active_connections,
                "connections_total": self._connections_total,
                "aborted_connections": self._aborted_connections,
                "rejected_connections": self._rejected_connections,
                "status_counts": dict(self._status_counts),
                "bytes_sent_total": self._bytes_sent_total,
                "read_errors_by_type": dict(self._read_errors_by_type),
                "write_errors_by_type": dict(self._write_errors_by_type),
            }
