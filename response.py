"""HTTP response model, security header presets and serializer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"

# Used for every rejection and for the index page.
ERROR_HEADERS: dict[str, str] = {
    "Content-Type": DEFAULT_CONTENT_TYPE,
    "Connection": "close",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

STATIC_HEADERS: dict[str, str] = {
    "Connection": "close",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Cache-Control": "no-store",
}


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=lambda: dict(ERROR_HEADERS))
    body: bytes | str = b""
    content_length_override: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @property
    def reason_phrase(self) -> str:
        return REASON_PHRASES.get(self.status_code, "Unknown")

    @property
    def content_length(self) -> int:
        if self.content_length_override is not None:
            return self.content_length_override
        return len(self.body)

    def head_bytes(self) -> bytes:
        """Render the status line and headers, including the blank line."""
        header_lines = [f"HTTP/1.1 {self.status_code} {self.reason_phrase}"]
        # Content-Type first, Content-Length second, then the preset.
        content_type = self.headers.get("Content-Type", DEFAULT_CONTENT_TYPE)
        header_lines.append(f"Content-Type: {content_type}")
        header_lines.append(f"Content-Length: {self.content_length}")
        header_lines.extend(
            f"{key}: {value}"
            for key, value in self.headers.items()
            if key not in ("Content-Type", "Content-Length")
        )
        return "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        return self.head_bytes() + self.body


def error_response(status_code: int, body: bytes | str = b"") -> HTTPResponse:
    return HTTPResponse(status_code=status_code, headers=dict(ERROR_HEADERS), body=body)


def static_response(body: bytes, content_type: str) -> HTTPResponse:
    headers = {"Content-Type": content_type, **STATIC_HEADERS}
    return HTTPResponse(status_code=200, headers=headers, body=body)


def as_head_response(response: HTTPResponse) -> HTTPResponse:
    """Drop the body while keeping the GET Content-Length."""
    return replace(
        response,
        headers=dict(response.headers),
        body=b"",
        content_length_override=response.content_length,
    )
