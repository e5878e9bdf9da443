"""Allow-list resolution of request paths to static files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from config import ServerConfig

INDEX_ROUTE = "/"
STYLESHEET_ROUTE = "/style.css"
ENTRIES_PREFIX = "/entries/"


@dataclass(frozen=True, slots=True)
class IndexTarget:
    pass


@dataclass(frozen=True, slots=True)
class StaticFileTarget:
    fs_path: Path
    content_type: str


@dataclass(frozen=True, slots=True)
class NotFoundTarget:
    pass


ResolvedTarget = IndexTarget | StaticFileTarget | NotFoundTarget


def content_type_for(path: str) -> str:
    if path.endswith(".css"):
        return "text/css"
    return "text/html"


def resolve_target(path: str, config: ServerConfig) -> ResolvedTarget:
    """Map a validated request path to what may be served for it.

    Only the index, the stylesheet and flat ``.html`` files directly under
    the entries directory are servable. Paths are never normalized: any
    ``..`` or nested separator is refused outright.
    """
    if path == INDEX_ROUTE:
        return IndexTarget()

    if path == STYLESHEET_ROUTE:
        return StaticFileTarget(config.stylesheet_path, content_type_for(path))

    if path.startswith(ENTRIES_PREFIX):
        entry_name = path.removeprefix(ENTRIES_PREFIX)
        if not entry_name or ".." in entry_name or "/" in entry_name:
            return NotFoundTarget()
        if not entry_name.endswith(".html"):
            return NotFoundTarget()
        return StaticFileTarget(config.entries_root / entry_name, content_type_for(path))

    return NotFoundTarget()
