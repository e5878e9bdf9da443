"""Handlers that read resolved static targets from disk."""

import logging

from config import ServerConfig
from resolver import IndexTarget, ResolvedTarget, StaticFileTarget
from response import HTTPResponse, error_response, static_response

logger = logging.getLogger(__name__)


def serve_index(config: ServerConfig) -> HTTPResponse:
    try:
        body = config.index_path.read_bytes()
    except OSError as exc:
        logger.error("Index file %s unreadable: %s", config.index_path, exc)
        return error_response(500)
    # The index keeps the default header preset.
    return HTTPResponse(status_code=200, body=body)


def serve_static_file(target: StaticFileTarget) -> HTTPResponse:
    try:
        body = target.fs_path.read_bytes()
    except (OSError, ValueError):
        # Allow-listed but missing is reported exactly like not found.
        return error_response(404)
    return static_response(body, target.content_type)


def serve_target(target: ResolvedTarget, config: ServerConfig) -> HTTPResponse:
    if isinstance(target, IndexTarget):
        return serve_index(config)
    if isinstance(target, StaticFileTarget):
        return serve_static_file(target)
    return error_response(404)
