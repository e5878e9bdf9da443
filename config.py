"""Configuration constants and the immutable server configuration value."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

HOST: str = "127.0.0.1"
PORT: int = 8080
INDEX_PATH: str = "/opt/news/static/index.html"
STATIC_ROOT: str = "/opt/news/static"
SOCKET_TIMEOUT_SECS: int = 5
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
LOG_FORMAT: str = "plain"
LINGER_TIMEOUT_SECS: float = 1.0
MAX_DRAIN_BYTES: int = 64 * 1024

# Global request limits
MAX_REQUEST_SIZE: int = 8 * 1024
MAX_REQUEST_LINE_LEN: int = 1024
MAX_HEADER_LINES: int = 32
MAX_HEADER_LINE_LEN: int = 1024
MAX_PATH_LEN: int = 256

LOG_FORMATS = ("plain", "json")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Process-wide settings, built once at startup and passed explicitly."""

    host: str = HOST
    port: int = PORT
    index_path: Path = Path(INDEX_PATH)
    static_root: Path = Path(STATIC_ROOT)
    max_request_size: int = MAX_REQUEST_SIZE
    max_request_line_len: int = MAX_REQUEST_LINE_LEN
    max_header_lines: int = MAX_HEADER_LINES
    max_header_line_len: int = MAX_HEADER_LINE_LEN
    max_path_len: int = MAX_PATH_LEN
    socket_timeout_secs: float = SOCKET_TIMEOUT_SECS
    worker_count: int = WORKER_COUNT
    request_queue_size: int = REQUEST_QUEUE_SIZE
    log_format: str = LOG_FORMAT

    def __post_init__(self) -> None:
        # Accept plain strings for paths.
        object.__setattr__(self, "index_path", Path(self.index_path))
        object.__setattr__(self, "static_root", Path(self.static_root))

        for name in (
            "max_request_size",
            "max_request_line_len",
            "max_header_lines",
            "max_header_line_len",
            "max_path_len",
            "worker_count",
            "request_queue_size",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.socket_timeout_secs <= 0:
            raise ValueError("socket_timeout_secs must be positive")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Unsupported log format: {self.log_format}")

    @property
    def stylesheet_path(self) -> Path:
        return self.static_root / "style.css"

    @property
    def entries_root(self) -> Path:
        return self.static_root / "entries"
