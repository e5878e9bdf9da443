"""HTTP request-line model and bounded request parser."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from config import ServerConfig

ALLOWED_METHODS = frozenset({"GET", "HEAD"})

# Unicode White_Space only; str.split() would also break on U+001C..U+001F.
_WHITESPACE = re.compile(
    "[\t\n\x0b\x0c\r \x85\xa0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000]+"
)


class RequestAborted(Exception):
    """Raised when the connection delivered nothing worth answering."""


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class RequestLine:
    method: str = ""
    path: str = ""

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"

    @classmethod
    def from_bytes(cls, raw: bytes, config: ServerConfig) -> "RequestLine":
        """Validate one raw request buffer and return its method and path.

        Header lines are only counted and length-checked, and the HTTP
        version token is ignored. Header limits are enforced before the
        method, so a bad method with oversized headers is reported as 431.
        """
        if not raw:
            raise RequestAborted("Connection closed before sending any bytes")

        # A read that filled the buffer may have been truncated.
        if len(raw) >= config.max_request_size:
            raise HTTPRequestParseError("Request filled the read buffer", status_code=431)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise HTTPRequestParseError("Request is not valid UTF-8") from exc

        lines = _iter_lines(text)
        request_line = next(lines, None)
        if request_line is None:
            raise HTTPRequestParseError("Missing request line")
        if _byte_length(request_line) > config.max_request_line_len:
            raise HTTPRequestParseError("Request line too long")

        tokens = [token for token in _WHITESPACE.split(request_line) if token]
        method = tokens[0] if tokens else ""
        path = tokens[1] if len(tokens) > 1 else ""

        header_count = 0
        for line in lines:
            if not line:
                break
            header_count += 1
            if (
                header_count > config.max_header_lines
                or _byte_length(line) > config.max_header_line_len
            ):
                raise HTTPRequestParseError("Header block too large", status_code=431)

        if method not in ALLOWED_METHODS:
            raise HTTPRequestParseError("Method not allowed", status_code=405)

        if _byte_length(path) > config.max_path_len:
            raise HTTPRequestParseError("Request path too long")

        return cls(method=method, path=path)


def _iter_lines(text: str) -> Iterator[str]:
    """Yield lines split on LF, dropping one trailing CR from each."""
    if not text:
        return
    if text.endswith("\n"):
        text = text[:-1]
    for line in text.split("\n"):
        yield line[:-1] if line.endswith("\r") else line


def _byte_length(value: str) -> int:
    return len(value.encode("utf-8"))
