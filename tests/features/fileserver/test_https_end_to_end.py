import threading
from datetime import timedelta

import pytest
import requests

from core.time import SystemClock
from features.certs.application.dto import PrepareServerCertificateInput
from features.certs.application.use_cases import PrepareServerCertificateUseCase
from features.certs.infrastructure.filesystem import OperatingSystemFileSystem
from features.fileserver.domain.exceptions import TLSConfigurationError
from features.fileserver.domain.models import FileServerConfiguration, TLSConfiguration
from features.fileserver.infrastructure.server import (
    FileServer,
    build_server_ssl_context,
    format_start_message,
)

from tests.helpers.certs import make_services, make_settings


@pytest.fixture
def issued(tmp_path):
    settings = make_settings(str(tmp_path / "certs"), authority_validity=timedelta(days=90))
    services = make_services(settings, file_system=OperatingSystemFileSystem(), clock=SystemClock())
    output = PrepareServerCertificateUseCase(services).execute(
        PrepareServerCertificateInput(hosts=["localhost", "127.0.0.1"])
    )
    return settings, output


def test_https_client_trusting_authority_gets_200(tmp_path, issued):
    settings, output = issued
    site = tmp_path / "site"
    site.mkdir()
    (site / "hello.txt").write_text("hello over tls")

    configuration = FileServerConfiguration(
        bind_address="127.0.0.1",
        port=0,
        directory_path=str(site),
        tls=TLSConfiguration(
            certificate_path=output.server_certificate.certificate_path,
            private_key_path=output.server_certificate.private_key_path,
        ),
    )
    server = FileServer().create_server(configuration)
    worker = threading.Thread(target=server.serve_forever, daemon=True)
    worker.start()
    try:
        response = requests.get(
            f"https://127.0.0.1:{server.port}/hello.txt",
            verify=settings.authority_certificate_path,
            timeout=10,
        )
    finally:
        server.shutdown()
        server.server_close()
        worker.join(timeout=10)

    assert response.status_code == 200
    assert response.text == "hello over tls"
    assert response.headers["Server"] == "ghttpd"


def test_serve_stops_when_event_is_set(tmp_path):
    stop = threading.Event()
    configuration = FileServerConfiguration(bind_address="127.0.0.1", port=0, directory_path=str(tmp_path))
    stop.set()

    FileServer().serve(configuration, stop_event=stop)


def test_ssl_context_requires_both_paths():
    with pytest.raises(TLSConfigurationError):
        build_server_ssl_context(TLSConfiguration(certificate_path="/tmp/cert.pem"))


def test_ssl_context_reports_unreadable_files(tmp_path):
    with pytest.raises(TLSConfigurationError):
        build_server_ssl_context(
            TLSConfiguration(
                certificate_path=str(tmp_path / "missing.pem"),
                private_key_path=str(tmp_path / "missing.key"),
            )
        )


def test_start_message_uses_display_address(tmp_path):
    configuration = FileServerConfiguration(bind_address="", port=8443, directory_path=str(tmp_path))

    assert format_start_message(configuration, secure=True) == (
        "Serving HTTPS on 0.0.0.0 port 8443 (https://localhost:8443/) ..."
    )


@pytest.mark.parametrize(
    "bind_address, port, tls, expected",
    [
        ("::1", 9443, TLSConfiguration("cert.pem", "key.pem"), "Serving HTTPS on ::1 port 9443 (https://[::1]:9443/) ..."),
        ("192.168.1.5", 8000, None, "Serving HTTP on 192.168.1.5 port 8000 (http://192.168.1.5:8000/) ..."),
    ],
)
def test_start_message_follows_tls_configuration(tmp_path, bind_address, port, tls, expected):
    configuration = FileServerConfiguration(
        bind_address=bind_address, port=port, directory_path=str(tmp_path), tls=tls
    )

    assert format_start_message(configuration, secure=False) == expected
