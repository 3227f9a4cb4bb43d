"""ディレクトリを配信する Flask アプリケーション"""
from __future__ import annotations

import html
import logging
import os
import time
from datetime import datetime
from urllib.parse import quote

from flask import Flask, Response, abort, g, redirect, request, send_file
from werkzeug.security import safe_join

from core.logging_config import LOGGING_TYPE_JSON
from features.fileserver.domain.markdown import MarkdownRenderer
from features.fileserver.domain.models import (
    PROTOCOL_HTTP_1_0,
    SERVER_HEADER_VALUE,
    FileServerConfiguration,
)

logger = logging.getLogger("ghttp.fileserver.requests")

CONSOLE_REQUEST_TIME_FORMAT = "%d/%b/%Y %H:%M:%S"
INDEX_FILE_NAME = "index.html"
README_FILE_NAME = "README.md"
DIRECTORY_LISTING_DISABLED_MESSAGE = "Directory listing disabled"


def format_console_request_log(
    remote_address: str,
    started_at: datetime,
    request_line: str,
    status_code: int,
    size: int | None,
) -> str:
    """``127.0.0.1 - - [02/Jan/2006 15:04:05] "GET / HTTP/1.1" 200 123`` 形式"""

    size_field = str(size) if size else "-"
    timestamp = started_at.strftime(CONSOLE_REQUEST_TIME_FORMAT)
    return f'{remote_address} - - [{timestamp}] "{request_line}" {status_code} {size_field}'


def _render_listing(directory: str, url_path: str) -> str:
    entries = []
    for name in sorted(os.listdir(directory)):
        display = name + "/" if os.path.isdir(os.path.join(directory, name)) else name
        entries.append(f'<a href="{quote(display)}">{html.escape(display)}</a>')
    title = html.escape(url_path)
    body = "\n".join(entries)
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
        f"<title>Index of {title}</title>\n</head>\n<body>\n"
        f"<h1>Index of {title}</h1>\n<pre>\n{body}\n</pre>\n</body>\n</html>\n"
    )


def create_file_server_app(
    configuration: FileServerConfiguration,
    renderer: MarkdownRenderer | None = None,
) -> Flask:
    """``configuration.directory_path`` 配下のファイルを返すアプリを構築する

    - ``.md`` は Markdown 有効時に HTML として描画する
    - ディレクトリは ``index.html``、``README.md``(Markdown 有効時)、
      一覧表示の順に解決し、一覧が無効なら 403 を返す
    """

    app = Flask(__name__, static_folder=None)
    root = os.path.abspath(configuration.directory_path)
    markdown_renderer = renderer or MarkdownRenderer()
    json_logging = configuration.logging_type == LOGGING_TYPE_JSON

    def _render_markdown(path: str) -> Response:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            source = handle.read()
        page = markdown_renderer.render_page(source, os.path.basename(path))
        return Response(page, mimetype="text/html")

    @app.before_request
    def start_request_timer():
        g.start_time = time.perf_counter()
        g.started_at = datetime.now()
        if json_logging:
            logger.info(
                "request started",
                extra={
                    "event": "fileserver.request.started",
                    "method": request.method,
                    "path": request.path,
                    "protocol": request.environ.get("SERVER_PROTOCOL", ""),
                    "remote": request.remote_addr,
                },
            )

    @app.route("/", defaults={"request_path": ""}, methods=["GET", "HEAD"])
    @app.route("/<path:request_path>", methods=["GET", "HEAD"])
    def serve_path(request_path: str):
        target = safe_join(root, request_path) if request_path else root
        if target is None or not os.path.exists(target):
            abort(404)

        if os.path.isdir(target):
            if not request.path.endswith("/"):
                return redirect(request.path + "/", code=301)
            index_path = os.path.join(target, INDEX_FILE_NAME)
            if os.path.isfile(index_path):
                return send_file(index_path)
            readme_path = os.path.join(target, README_FILE_NAME)
            if configuration.enable_markdown and os.path.isfile(readme_path):
                return _render_markdown(readme_path)
            if configuration.disable_directory_listing:
                return Response(DIRECTORY_LISTING_DISABLED_MESSAGE + "\n", status=403, mimetype="text/plain")
            return Response(_render_listing(target, request.path), mimetype="text/html")

        if configuration.enable_markdown and target.lower().endswith(".md"):
            return _render_markdown(target)
        return send_file(target)

    @app.after_request
    def add_server_headers(response):
        response.headers["Server"] = SERVER_HEADER_VALUE
        if configuration.protocol_version == PROTOCOL_HTTP_1_0:
            response.headers["Connection"] = "close"
        return response

    @app.after_request
    def log_request(response):
        start = getattr(g, "start_time", None)
        duration = time.perf_counter() - start if start is not None else 0.0
        if json_logging:
            logger.info(
                "request completed",
                extra={
                    "event": "fileserver.request.completed",
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration": round(duration, 6),
                    "remote": request.remote_addr,
                },
            )
            return response

        target = request.full_path if request.query_string else request.path
        request_line = f"{request.method} {target} {request.environ.get('SERVER_PROTOCOL', 'HTTP/1.1')}"
        logger.info(
            format_console_request_log(
                request.remote_addr or "-",
                getattr(g, "started_at", None) or datetime.now(),
                request_line,
                response.status_code,
                response.content_length,
            ),
            extra={"event": "fileserver.request"},
        )
        return response

    return app


__all__ = ["create_file_server_app", "format_console_request_log"]
