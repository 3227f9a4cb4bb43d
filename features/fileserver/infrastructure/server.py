"""Werkzeug の開発サーバーでファイルを配信する"""
from __future__ import annotations

import logging
import signal
import ssl
import threading
from typing import Callable, Optional

from flask import Flask
from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

from core.logging_config import LOGGING_TYPE_JSON
from core.time import utc_now_isoformat
from features.fileserver.domain.addresses import format_url_for_logging
from features.fileserver.domain.exceptions import FileServerError, TLSConfigurationError
from features.fileserver.domain.models import FileServerConfiguration, TLSConfiguration
from features.fileserver.presentation.app import create_file_server_app

logger = logging.getLogger("ghttp.fileserver")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class _GhttpRequestHandler(WSGIRequestHandler):
    """Server ヘッダーと access log をアプリ側に任せるハンドラ"""

    def send_response(self, code, message=None):  # type: ignore[override]
        self.send_response_only(code, message)
        self.send_header("Date", self.date_time_string())

    def log_request(self, code="-", size="-"):  # type: ignore[override]
        pass


def _request_handler_for(protocol_version: str) -> type[WSGIRequestHandler]:
    return type("GhttpRequestHandler", (_GhttpRequestHandler,), {"protocol_version": protocol_version})


def build_server_ssl_context(tls: TLSConfiguration) -> ssl.SSLContext:
    """サーバー証明書と秘密鍵から TLS 1.2 以上のサーバーコンテキストを作る"""

    if not tls.is_complete:
        raise TLSConfigurationError("both certificate and private key paths must be provided")
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(certfile=tls.certificate_path, keyfile=tls.private_key_path)
    except (OSError, ssl.SSLError) as exc:
        raise TLSConfigurationError(f"load tls certificate: {exc}") from exc
    return context


def format_start_message(
    configuration: FileServerConfiguration, secure: bool, port: Optional[int] = None
) -> str:
    bind_address = configuration.bind_address.strip() or "0.0.0.0"
    port = configuration.port if port is None else port
    scheme = "https" if secure else configuration.scheme
    url = format_url_for_logging(scheme, configuration.bind_address, port)
    return f"Serving {scheme.upper()} on {bind_address} port {port} ({url}/) ..."


class FileServer:
    """設定に従ってサーバーを起動し、シグナルまたは stop_event で停止する"""

    def __init__(
        self,
        app_factory: Callable[[FileServerConfiguration], Flask] = create_file_server_app,
    ) -> None:
        self._app_factory = app_factory

    def create_server(
        self,
        configuration: FileServerConfiguration,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> BaseWSGIServer:
        if ssl_context is None and configuration.tls is not None:
            ssl_context = build_server_ssl_context(configuration.tls)
        app = self._app_factory(configuration)
        try:
            return make_server(
                configuration.bind_address or "0.0.0.0",
                configuration.port,
                app,
                threaded=True,
                request_handler=_request_handler_for(configuration.protocol_version),
                ssl_context=ssl_context,
            )
        except OSError as exc:
            raise FileServerError(
                f"listen on {configuration.bind_address or '0.0.0.0'}:{configuration.port}: {exc}"
            ) from exc

    def serve(
        self,
        configuration: FileServerConfiguration,
        ssl_context: Optional[ssl.SSLContext] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        server = self.create_server(configuration, ssl_context)
        secure = ssl_context is not None or configuration.scheme == "https"
        self._log_start(configuration, server, secure)

        stop = stop_event or threading.Event()
        previous_handlers = self._install_signal_handlers(stop)
        worker = threading.Thread(target=server.serve_forever, name="ghttp-server", daemon=True)
        worker.start()
        try:
            while not stop.wait(0.5):
                if not worker.is_alive():
                    raise FileServerError("server stopped unexpectedly")
            logger.info("shutdown initiated", extra={"event": "fileserver.shutdown.started"})
        finally:
            server.shutdown()
            server.server_close()
            worker.join()
            self._restore_signal_handlers(previous_handlers)
        logger.info("shutdown completed", extra={"event": "fileserver.shutdown.completed"})

    # ------------------------------------------------------------------
    def _log_start(self, configuration: FileServerConfiguration, server: BaseWSGIServer, secure: bool) -> None:
        if configuration.logging_type != LOGGING_TYPE_JSON:
            logger.info(format_start_message(configuration, secure, server.port), extra={"event": "fileserver.serving"})
            return
        scheme = "https" if secure else configuration.scheme
        logger.info(
            f"serving {scheme}",
            extra={
                "event": "fileserver.serving",
                "directory": configuration.directory_path,
                "protocol": configuration.protocol_version,
                "url": format_url_for_logging(scheme, configuration.bind_address, server.port),
                "timestamp": utc_now_isoformat(),
            },
        )

    @staticmethod
    def _install_signal_handlers(stop: threading.Event) -> dict:
        if threading.current_thread() is not threading.main_thread():
            return {}

        def _handle(signum, _frame):
            logger.info(
                "received signal %s",
                signal.Signals(signum).name,
                extra={"event": "fileserver.signal"},
            )
            stop.set()

        previous = {}
        for signum in SHUTDOWN_SIGNALS:
            previous[signum] = signal.signal(signum, _handle)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


__all__ = ["FileServer", "build_server_ssl_context", "format_start_message"]
